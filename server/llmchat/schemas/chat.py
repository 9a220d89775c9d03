from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    role: str = Field(..., pattern=r"^(user|assistant|system)$")
    content: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    def append(self, text: str) -> None:
        # Only the in-progress assistant reply grows after creation
        self.content += text


class RequestSpec(BaseModel):
    """Everything needed to build one chat request. Built fresh per send."""

    model_config = ConfigDict(frozen=True)

    provider: Provider
    endpoint: str
    api_key: str = ""
    model: str
    messages: List[ChatMessage] = Field(default_factory=list)


class ChatStreamRequest(BaseModel):
    """Relay body; empty endpoint, key or model fall back to settings."""

    model_config = ConfigDict(populate_by_name=True)

    provider: Provider
    endpoint: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    model: Optional[str] = None
    messages: List[ChatMessage] = Field(..., min_length=1)


class ModelsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: Provider
    endpoint: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class HttpRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = "POST"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str | None = None
