from fastapi import APIRouter, HTTPException, Request
from typing import Dict, Any

from llmchat.client.llm_client import LLMClient
from llmchat.core.errors import error_hint
from llmchat.core.relay import EventRelay
from llmchat.schemas.chat import ModelsRequest
from llmchat.schemas.events import ErrorEvent

router = APIRouter()


@router.post("/models")
async def fetch_models(body: ModelsRequest, http_request: Request) -> Dict[str, Any]:
    """Fetch and filter the chat models the provider offers."""
    client: LLMClient = http_request.app.state.client
    relay: EventRelay = http_request.app.state.relay
    settings = client.settings

    endpoint = body.endpoint or settings.endpoint_for(body.provider)
    api_key = body.api_key or settings.api_key_for(body.provider)
    if not endpoint:
        raise HTTPException(status_code=400, detail="Please enter an endpoint URL")
    if not api_key:
        raise HTTPException(status_code=400, detail="Please enter an API key")

    waiter = relay.expect_models()
    client.fetch_models(body.provider, endpoint, api_key)
    event = await waiter
    if event is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer models request")
    if isinstance(event, ErrorEvent):
        raise HTTPException(status_code=502, detail={"message": event.message, "hint": error_hint(event.message)})
    return {"provider": body.provider.value, "models": event.models}
