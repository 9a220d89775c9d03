from __future__ import annotations
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from llmchat.protocol.decoder import StreamDecoder

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(eq=False)
class RequestHandle:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: LifecycleState = LifecycleState.IN_FLIGHT
    task: Optional[asyncio.Task] = None
    decoder: Optional[StreamDecoder] = None


class RequestLifecycle:
    """Owns the single in-flight request of one kind (chat or model catalog).

    IDLE -> IN_FLIGHT -> COMPLETED | CANCELLED -> IDLE. Callbacks from a handle
    that is no longer the current one are rejected by identity, which is how
    late completions of superseded or cancelled requests get swallowed.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._active: Optional[RequestHandle] = None

    @property
    def state(self) -> LifecycleState:
        if self._active is None:
            return LifecycleState.IDLE
        return self._active.state

    @property
    def active(self) -> Optional[RequestHandle]:
        return self._active

    def begin(self) -> RequestHandle:
        """Replace any in-flight request with a new one, in a single step."""
        previous = self._active
        if previous is not None:
            logger.info("%s request %s superseded", self.name, previous.id)
            self._abort(previous)
        handle = RequestHandle()
        self._active = handle
        return handle

    def is_current(self, handle: RequestHandle) -> bool:
        return handle is self._active and handle.state is LifecycleState.IN_FLIGHT

    def complete(self, handle: RequestHandle) -> bool:
        """Mark ``handle`` finished. False means the caller must stay silent."""
        if not self.is_current(handle):
            logger.debug("%s request %s finished after it was replaced; ignoring", self.name, handle.id)
            return False
        handle.state = LifecycleState.COMPLETED
        self._active = None
        return True

    def cancel(self) -> Optional[RequestHandle]:
        """Cancel the in-flight request. Returns it, or None when already idle."""
        handle = self._active
        if handle is None:
            return None
        logger.info("%s request %s cancelled", self.name, handle.id)
        self._abort(handle)
        self._active = None
        return handle

    def _abort(self, handle: RequestHandle) -> None:
        handle.state = LifecycleState.CANCELLED
        if handle.decoder is not None:
            handle.decoder.cancel()
            handle.decoder = None
        if handle.task is not None and not handle.task.done():
            handle.task.cancel()
