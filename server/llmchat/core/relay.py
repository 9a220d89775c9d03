from __future__ import annotations
import asyncio
import logging
from typing import Optional

from llmchat.core.session import Conversation
from llmchat.schemas.events import ClientEvent, ErrorEvent, ModelsReceived

logger = logging.getLogger(__name__)


class EventRelay:
    """Listener that hands client events to the HTTP response waiting for them.

    Only one chat stream is attached at a time, mirroring the single in-flight
    chat request: attaching a new stream closes the previous one with a
    ``None`` sentinel. Catalog results resolve the pending models waiter.
    Chat events also grow the reply in ``conversation``, attached or not.
    """

    def __init__(self, conversation: Optional[Conversation] = None) -> None:
        self.conversation = conversation or Conversation()
        self._chat_queue: Optional[asyncio.Queue] = None
        self._models_waiter: Optional[asyncio.Future] = None

    def __call__(self, event: ClientEvent) -> None:
        if isinstance(event, ModelsReceived) or (isinstance(event, ErrorEvent) and event.source == "models"):
            waiter = self._models_waiter
            if waiter is not None and not waiter.done():
                waiter.set_result(event)
            return
        self.conversation.apply_event(event)
        if self._chat_queue is None:
            logger.debug("No stream attached; dropping %s event", event.type)
            return
        self._chat_queue.put_nowait(event)

    def attach_chat(self) -> asyncio.Queue:
        if self._chat_queue is not None:
            self._chat_queue.put_nowait(None)
        self._chat_queue = asyncio.Queue()
        return self._chat_queue

    def detach_chat(self, queue: asyncio.Queue) -> None:
        if self._chat_queue is queue:
            self._chat_queue = None

    def expect_models(self) -> asyncio.Future:
        previous = self._models_waiter
        if previous is not None and not previous.done():
            # Superseded fetch; its caller gets None
            previous.set_result(None)
        self._models_waiter = asyncio.get_running_loop().create_future()
        return self._models_waiter
