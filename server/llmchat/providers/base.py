from __future__ import annotations
from typing import List, NamedTuple, Optional, Protocol

from llmchat.protocol.scanner import find_string_value, unescape
from llmchat.schemas.chat import HttpRequest, Provider, RequestSpec

DATA_PREFIX = "data: "
EVENT_PREFIX = "event: "


class Chunk(NamedTuple):
    """Result of decoding one SSE line.

    ``event_type`` is the label carried to the next line; providers without
    ``event:`` records hand back the one they were given.
    """

    text: Optional[str]
    event_type: str


class ChatProvider(Protocol):
    id: Provider
    label: str

    def chat_request(self, spec: RequestSpec, messages_json: str) -> HttpRequest:
        ...

    def models_request(self, endpoint: str, api_key: str) -> HttpRequest:
        ...

    def extract_chunk(self, line: str, event_type: str) -> Chunk:
        ...

    def parse_models(self, body: str) -> List[str]:
        ...


def join_endpoint(endpoint: str, path: str) -> str:
    return endpoint.rstrip("/") + "/" + path


def data_payload(line: str) -> Optional[str]:
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):]


def text_value(data: str, key: str, start: int = 0) -> Optional[str]:
    """Unescaped string value for ``key``, or None when absent or empty."""
    found = find_string_value(data, key, start)
    if found is None:
        return None
    text = unescape(found[0])
    return text or None
