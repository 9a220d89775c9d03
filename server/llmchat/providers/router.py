from __future__ import annotations
from typing import Dict, Optional

from llmchat.config import Settings, get_settings
from llmchat.providers.anthropic import AnthropicProvider
from llmchat.providers.base import ChatProvider
from llmchat.providers.gemini import GeminiProvider
from llmchat.providers.openai import OpenAIProvider
from llmchat.schemas.chat import Provider


class ProviderRouter:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        # One adapter per supported wire format
        self.providers: Dict[Provider, ChatProvider] = {
            Provider.OPENAI: OpenAIProvider(),
            Provider.ANTHROPIC: AnthropicProvider(
                version=settings.anthropic_version,
                max_tokens=settings.anthropic_max_tokens,
            ),
            Provider.GEMINI: GeminiProvider(),
        }

    def get_provider(self, provider: Provider | str) -> ChatProvider:
        try:
            return self.providers[Provider(provider)]
        except ValueError:
            raise ValueError(f"Unknown provider: {provider!r}") from None
