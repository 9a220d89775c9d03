from fastapi import APIRouter, HTTPException, Request
import logging
from typing import Any, Dict
from fastapi.responses import StreamingResponse

from llmchat.client.llm_client import LLMClient
from llmchat.core.relay import EventRelay
from llmchat.core.session import Conversation
from llmchat.schemas.chat import ChatStreamRequest
from llmchat.schemas.events import Done

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat/stream")
async def stream_chat(body: ChatStreamRequest, http_request: Request):
    """Stream a chat reply from the selected provider as SSE."""
    client: LLMClient = http_request.app.state.client
    relay: EventRelay = http_request.app.state.relay
    settings = client.settings

    try:
        request_id = client.send_chat_request(
            body.provider,
            body.endpoint or settings.endpoint_for(body.provider),
            body.api_key or settings.api_key_for(body.provider),
            body.model or settings.model_for(body.provider),
            body.messages,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    relay.conversation.load(body.messages)
    relay.conversation.begin_reply(request_id)
    # No events can fire before the task first runs, so attaching now loses nothing
    queue = relay.attach_chat()
    logger.info("/chat/stream start request=%s provider=%s", request_id, body.provider.value)

    async def generator():
        try:
            while True:
                event = await queue.get()
                if event is None:
                    # A newer stream replaced this one
                    break
                yield "data: " + event.model_dump_json() + "\n\n"
                if isinstance(event, Done):
                    break
        finally:
            relay.detach_chat(queue)
            if client.active_chat_request == request_id:
                logger.info("/chat/stream client left, cancelling request=%s", request_id)
                client.cancel()

    return StreamingResponse(
        generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post("/chat/cancel")
async def cancel_chat(http_request: Request):
    client: LLMClient = http_request.app.state.client
    client.cancel()
    return {"status": "cancelled"}


@router.get("/chat/history")
async def chat_history(http_request: Request) -> Dict[str, Any]:
    """The conversation as last sent, including the reply streamed so far."""
    conversation: Conversation = http_request.app.state.relay.conversation
    return {
        "id": conversation.id,
        "title": conversation.title,
        "streaming": conversation.pending_reply is not None,
        "messages": [m.model_dump(mode="json") for m in conversation.messages],
    }


@router.delete("/chat/history")
async def clear_history(http_request: Request):
    client: LLMClient = http_request.app.state.client
    # The reply in flight belongs to the history being cleared
    client.cancel()
    http_request.app.state.relay.conversation.clear()
    return {"status": "cleared"}
