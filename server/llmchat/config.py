from functools import lru_cache
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

from llmchat.schemas.chat import Provider


class Settings(BaseSettings):
    # Allow both localhost and 127.0.0.1 for local development
    allowed_origins: List[AnyHttpUrl] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]  # type: ignore

    # Per-provider defaults, used when a caller leaves a field empty
    openai_endpoint: str = "https://api.openai.com/v1"
    anthropic_endpoint: str = "https://api.anthropic.com/v1"
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_model: str = "gpt-4"
    anthropic_model: str = "claude-sonnet-4-20250514"
    gemini_model: str = "gemini-2.0-flash"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None

    # Wire protocol knobs
    anthropic_version: str = "2023-06-01"
    anthropic_max_tokens: int = 4096

    # Total deadline per request in seconds; 0 disables it
    request_timeout: float = 300.0
    connect_timeout: float = 10.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=("../.env", ".env"),
        extra="ignore",  # ignore env vars not defined as fields
    )

    def endpoint_for(self, provider: Provider) -> str:
        return {
            Provider.OPENAI: self.openai_endpoint,
            Provider.ANTHROPIC: self.anthropic_endpoint,
            Provider.GEMINI: self.gemini_endpoint,
        }[Provider(provider)]

    def model_for(self, provider: Provider) -> str:
        return {
            Provider.OPENAI: self.openai_model,
            Provider.ANTHROPIC: self.anthropic_model,
            Provider.GEMINI: self.gemini_model,
        }[Provider(provider)]

    def api_key_for(self, provider: Provider) -> str:
        key = {
            Provider.OPENAI: self.openai_api_key,
            Provider.ANTHROPIC: self.anthropic_api_key,
            Provider.GEMINI: self.google_api_key,
        }[Provider(provider)]
        return key or ""


@lru_cache()
def get_settings() -> Settings:
    return Settings()
