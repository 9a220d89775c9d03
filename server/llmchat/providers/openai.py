from __future__ import annotations
import json
from typing import List

from llmchat.protocol.scanner import iter_string_values
from llmchat.schemas.chat import HttpRequest, Provider, RequestSpec
from llmchat.providers.base import Chunk, data_payload, join_endpoint, text_value

# Catalog ids worth offering in a chat model picker
CHAT_MODEL_MARKERS = ("gpt", "o1", "o3", "chatgpt")


class OpenAIProvider:
    id = Provider.OPENAI
    label = "OpenAI"

    def _headers(self, api_key: str) -> dict:
        return {"Authorization": f"Bearer {api_key}"}

    def chat_request(self, spec: RequestSpec, messages_json: str) -> HttpRequest:
        # messages_json is spliced in as-is; it is already serialized
        body = '{"model": %s, "messages": %s, "stream": true}' % (
            json.dumps(spec.model),
            messages_json,
        )
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **self._headers(spec.api_key),
        }
        return HttpRequest(
            method="POST",
            url=join_endpoint(spec.endpoint, "chat/completions"),
            headers=headers,
            body=body,
        )

    def models_request(self, endpoint: str, api_key: str) -> HttpRequest:
        return HttpRequest(method="GET", url=join_endpoint(endpoint, "models"), headers=self._headers(api_key))

    def extract_chunk(self, line: str, event_type: str) -> Chunk:
        # data: {"choices":[{"delta":{"content":"..."}}]}
        data = data_payload(line)
        if data is None or data == "[DONE]":
            return Chunk(None, event_type)
        delta = data.find('"delta"')
        if delta < 0:
            return Chunk(None, event_type)
        return Chunk(text_value(data, "content", delta), event_type)

    def parse_models(self, body: str) -> List[str]:
        return [
            model_id
            for model_id in iter_string_values(body, "id")
            if any(marker in model_id for marker in CHAT_MODEL_MARKERS)
        ]
