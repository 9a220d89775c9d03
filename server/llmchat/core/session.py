from __future__ import annotations
import itertools
import time
from typing import Iterable, List, Optional

from llmchat.protocol.request_builder import serialize_messages
from llmchat.schemas.chat import ChatMessage, utcnow
from llmchat.schemas.events import ClientEvent, Done, TextDelta

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50

_counter = itertools.count(1)


def _generate_id() -> str:
    return f"chat_{int(time.time())}_{next(_counter)}"


class Conversation:
    """In-memory chat history feeding ``LLMClient.send_chat_request``.

    The assistant reply being streamed lives in the history as a placeholder
    and grows as ``TextDelta`` events are applied to it.
    """

    def __init__(self, conversation_id: Optional[str] = None, title: str = DEFAULT_TITLE) -> None:
        self.id = conversation_id or _generate_id()
        self.title = title
        self.created_at = utcnow()
        self.updated_at = self.created_at
        self.messages: List[ChatMessage] = []
        self._pending: Optional[ChatMessage] = None
        self._reply_request: Optional[str] = None

    @property
    def pending_reply(self) -> Optional[ChatMessage]:
        return self._pending

    def add_message(self, role: str, content: str) -> ChatMessage:
        msg = ChatMessage(role=role, content=content)
        self.messages.append(msg)
        self.updated_at = msg.created_at
        # Auto-generate title from first user message
        if self.title == DEFAULT_TITLE and role == "user":
            self.generate_title()
        return msg

    def load(self, messages: Iterable[ChatMessage]) -> None:
        """Replace the history with ``messages``, keeping a title already derived."""
        self.messages = [ChatMessage(role=m.role, content=m.content) for m in messages]
        self._pending = None
        self._reply_request = None
        self.updated_at = utcnow()
        if self.title == DEFAULT_TITLE:
            self.generate_title()

    def begin_reply(self, request_id: Optional[str] = None) -> ChatMessage:
        self._pending = self.add_message("assistant", "")
        self._reply_request = request_id
        return self._pending

    def apply_event(self, event: ClientEvent) -> None:
        if self._pending is None:
            return
        # Events of a request this reply does not belong to
        if self._reply_request is not None and event.request_id != self._reply_request:
            return
        if isinstance(event, TextDelta):
            self._pending.append(event.text)
            self.updated_at = utcnow()
        elif isinstance(event, Done):
            self._pending = None
            self._reply_request = None

    def generate_title(self) -> None:
        for msg in self.messages:
            if msg.role != "user":
                continue
            # Truncate to first line or 50 chars
            title = msg.content
            newline = title.find("\n")
            if newline > 0:
                title = title[:newline]
            if len(title) > TITLE_MAX_LENGTH:
                title = title[:TITLE_MAX_LENGTH - 3] + "..."
            self.title = title
            return

    def messages_json(self) -> str:
        return serialize_messages(self.messages)

    def clear(self) -> None:
        self.messages.clear()
        self._pending = None
        self._reply_request = None
        self.title = DEFAULT_TITLE
        self.updated_at = utcnow()
