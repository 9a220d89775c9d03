from __future__ import annotations
import json
from typing import List

from llmchat.protocol.scanner import iter_string_values
from llmchat.schemas.chat import HttpRequest, Provider, RequestSpec
from llmchat.providers.base import Chunk, EVENT_PREFIX, data_payload, join_endpoint, text_value

TEXT_EVENT = "content_block_delta"


class AnthropicProvider:
    id = Provider.ANTHROPIC
    label = "Anthropic"

    def __init__(self, version: str = "2023-06-01", max_tokens: int = 4096) -> None:
        self.version = version
        self.max_tokens = max_tokens

    def _headers(self, api_key: str) -> dict:
        return {
            "x-api-key": api_key,
            "anthropic-version": self.version,
        }

    def chat_request(self, spec: RequestSpec, messages_json: str) -> HttpRequest:
        body = '{"model": %s, "max_tokens": %d, "messages": %s, "stream": true}' % (
            json.dumps(spec.model),
            self.max_tokens,
            messages_json,
        )
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **self._headers(spec.api_key),
        }
        return HttpRequest(
            method="POST",
            url=join_endpoint(spec.endpoint, "messages"),
            headers=headers,
            body=body,
        )

    def models_request(self, endpoint: str, api_key: str) -> HttpRequest:
        return HttpRequest(method="GET", url=join_endpoint(endpoint, "models"), headers=self._headers(api_key))

    def extract_chunk(self, line: str, event_type: str) -> Chunk:
        # event: content_block_delta
        # data: {"type":"content_block_delta","delta":{"type":"text_delta","text":"..."}}
        if line.startswith(EVENT_PREFIX):
            return Chunk(None, line[len(EVENT_PREFIX):])
        data = data_payload(line)
        if data is None or event_type != TEXT_EVENT:
            return Chunk(None, event_type)
        return Chunk(text_value(data, "text"), event_type)

    def parse_models(self, body: str) -> List[str]:
        return [model_id for model_id in iter_string_values(body, "id") if "claude" in model_id]
