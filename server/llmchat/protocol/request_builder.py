from __future__ import annotations
import json
import logging
from typing import Iterable

from llmchat.providers.router import ProviderRouter
from llmchat.schemas.chat import ChatMessage, HttpRequest, Provider, RequestSpec

logger = logging.getLogger(__name__)


def serialize_messages(messages: Iterable[ChatMessage]) -> str:
    """Serialize a conversation as the provider-agnostic ``[{role, content}]`` list."""
    rows = []
    for m in messages:
        # Skip empty assistant messages (streaming placeholders)
        if m.role == "assistant" and not m.content:
            continue
        rows.append({"role": m.role, "content": m.content})
    return json.dumps(rows, ensure_ascii=False)


def build_chat_request(spec: RequestSpec, router: ProviderRouter) -> HttpRequest:
    provider = router.get_provider(spec.provider)
    request = provider.chat_request(spec, serialize_messages(spec.messages))
    logger.debug("Built %s chat request url=%s bytes=%d", provider.label, request.url, len(request.body or ""))
    return request


def build_models_request(
    provider_id: Provider | str,
    endpoint: str,
    api_key: str,
    router: ProviderRouter,
) -> HttpRequest:
    provider = router.get_provider(provider_id)
    return provider.models_request(endpoint, api_key)
