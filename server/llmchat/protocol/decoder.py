"""Incremental SSE decoding for one streaming chat request."""

from __future__ import annotations
import codecs
import logging
from dataclasses import dataclass
from typing import Callable

from llmchat.core.errors import UNREADABLE_API_ERROR
from llmchat.protocol.scanner import extract_error_message, has_error_payload, message_pending
from llmchat.providers.base import Chunk
from llmchat.schemas.events import ErrorEvent, EventListener, TextDelta

logger = logging.getLogger(__name__)

Extractor = Callable[[str, str], Chunk]


@dataclass
class StreamState:
    buffer: str = ""
    # Last ``event:`` label; only the Anthropic framing uses it
    event_type: str = ""
    cancelled: bool = False


class StreamDecoder:
    """Turns raw response bytes into ``TextDelta`` / ``ErrorEvent`` emissions.

    ``write()`` may be called with any byte split: mid-line, mid-token or in
    the middle of a multi-byte UTF-8 sequence. Complete lines go to the
    provider extractor; the unterminated remainder waits for more bytes.

    Before any line is handled the whole pending buffer is checked for an
    error body (``"error"`` and ``"message"`` both present). An error body
    produces one ``ErrorEvent`` and stops the decoder for good.
    """

    def __init__(self, extract: Extractor, request_id: str, emit: EventListener) -> None:
        self.state = StreamState()
        self.error_reported = False
        self._extract = extract
        self._request_id = request_id
        self._emit = emit
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def cancelled(self) -> bool:
        return self.state.cancelled

    def cancel(self) -> None:
        self.state.cancelled = True
        self.state.buffer = ""

    def write(self, data: bytes) -> None:
        if self.state.cancelled:
            return
        self.state.buffer += self._utf8.decode(data)

        if has_error_payload(self.state.buffer):
            message = extract_error_message(self.state.buffer)
            if message is None and message_pending(self.state.buffer):
                # Error body still arriving; hold lines until the message is complete
                return
            self._fail(message or UNREADABLE_API_ERROR)
            return

        self._drain_lines()

    def close(self) -> None:
        """Flush at end of stream: pending error body, then a final unterminated line."""
        if self.state.cancelled:
            return
        self.state.buffer += self._utf8.decode(b"", final=True)
        if has_error_payload(self.state.buffer):
            self._fail(extract_error_message(self.state.buffer) or UNREADABLE_API_ERROR)
            return
        self._drain_lines()
        tail, self.state.buffer = self.state.buffer, ""
        self._dispatch(tail.replace("\r", ""))

    def _drain_lines(self) -> None:
        # A listener may cancel the request from inside an emit
        while not self.state.cancelled:
            newline = self.state.buffer.find("\n")
            if newline < 0:
                return
            line = self.state.buffer[:newline].replace("\r", "")
            self.state.buffer = self.state.buffer[newline + 1:]
            self._dispatch(line)

    def _dispatch(self, line: str) -> None:
        if not line:
            return
        chunk = self._extract(line, self.state.event_type)
        self.state.event_type = chunk.event_type
        if chunk.text:
            self._emit(TextDelta(request_id=self._request_id, text=chunk.text))

    def _fail(self, message: str) -> None:
        logger.error("API error response: %s", message)
        self.error_reported = True
        self.cancel()
        self._emit(ErrorEvent(request_id=self._request_id, message=message, source="chat"))
