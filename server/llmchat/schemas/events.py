from __future__ import annotations
from typing import Callable, List, Literal, Union
from pydantic import BaseModel, Field


class TextDelta(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    request_id: str
    text: str


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    request_id: str
    message: str
    # Which lifecycle raised it: the chat stream or the model catalog fetch
    source: Literal["chat", "models"] = "chat"


class Done(BaseModel):
    type: Literal["done"] = "done"
    request_id: str


class ModelsReceived(BaseModel):
    type: Literal["models"] = "models"
    request_id: str
    models: List[str] = Field(default_factory=list)


ClientEvent = Union[TextDelta, ErrorEvent, Done, ModelsReceived]

# Events are handed to a plain callable owned by the UI layer
EventListener = Callable[[ClientEvent], None]
