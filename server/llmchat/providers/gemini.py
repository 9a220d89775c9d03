from __future__ import annotations
from typing import List

from llmchat.protocol.scanner import find_string_value, iter_string_values
from llmchat.schemas.chat import HttpRequest, Provider, RequestSpec
from llmchat.providers.base import Chunk, data_payload, join_endpoint, text_value

MODEL_PREFIX = "models/"


def to_gemini_contents(messages_json: str) -> str:
    """Rewrite a serialized ``[{"role", "content"}]`` list as Gemini ``contents``.

    Single forward pass: take the next role, then the content after it, and
    stop once either is missing. Content stays escaped exactly as serialized.
    """
    contents: List[str] = []
    pos = 0
    while True:
        role = find_string_value(messages_json, "role", pos)
        if role is None:
            break
        content = find_string_value(messages_json, "content", role[1])
        if content is None:
            break
        # Gemini roles: "user" and "model". System turns travel as user.
        gemini_role = "model" if role[0] == "assistant" else "user"
        contents.append('{"role": "%s", "parts": [{"text": "%s"}]}' % (gemini_role, content[0]))
        pos = content[1]
    return '{"contents": [%s]}' % ", ".join(contents)


class GeminiProvider:
    id = Provider.GEMINI
    label = "Gemini"

    def chat_request(self, spec: RequestSpec, messages_json: str) -> HttpRequest:
        # The key travels in the query string, not in a header
        url = join_endpoint(spec.endpoint, f"models/{spec.model}:streamGenerateContent?alt=sse&key={spec.api_key}")
        return HttpRequest(
            method="POST",
            url=url,
            headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
            body=to_gemini_contents(messages_json),
        )

    def models_request(self, endpoint: str, api_key: str) -> HttpRequest:
        return HttpRequest(method="GET", url=join_endpoint(endpoint, f"models?key={api_key}"))

    def extract_chunk(self, line: str, event_type: str) -> Chunk:
        # data: {"candidates":[{"content":{"parts":[{"text":"..."}]}}]}
        data = data_payload(line)
        if data is None:
            return Chunk(None, event_type)
        return Chunk(text_value(data, "text"), event_type)

    def parse_models(self, body: str) -> List[str]:
        models: List[str] = []
        for name in iter_string_values(body, "name"):
            if name.startswith(MODEL_PREFIX):
                name = name[len(MODEL_PREFIX):]
            # Only include generative models
            if "gemini" in name:
                models.append(name)
        return models
