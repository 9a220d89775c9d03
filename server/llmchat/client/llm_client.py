from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Iterable, Optional, Set, TypeVar
import httpx

from llmchat.client.lifecycle import RequestHandle, RequestLifecycle
from llmchat.client.transport import HttpTransport
from llmchat.config import Settings, get_settings
from llmchat.core.errors import (
    MODELS_TRANSPORT_FAILURE,
    TRANSPORT_FAILURE,
    UNREADABLE_API_ERROR,
    friendly_status_message,
    timeout_message,
)
from llmchat.protocol.decoder import StreamDecoder
from llmchat.protocol.request_builder import build_chat_request, build_models_request
from llmchat.protocol.scanner import extract_error_message, has_error_payload
from llmchat.providers.base import ChatProvider
from llmchat.providers.router import ProviderRouter
from llmchat.schemas.chat import ChatMessage, HttpRequest, Provider, RequestSpec
from llmchat.schemas.events import ClientEvent, Done, ErrorEvent, EventListener, ModelsReceived

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMClient:
    """Streaming chat client for OpenAI, Anthropic and Gemini style APIs.

    The client is an actor bound to one asyncio event loop: call its methods
    from that loop only. Transport work runs as tasks on the same loop, so the
    decoder and both lifecycles are never touched concurrently.

    Events go to ``listener``:
      - ``TextDelta`` for each piece of streamed text
      - ``ErrorEvent`` for provider errors, transport failures and deadlines
      - ``Done`` exactly once per chat request, unless a newer request replaced it
      - ``ModelsReceived`` (or ``ErrorEvent`` with ``source="models"``) per catalog fetch
    """

    def __init__(
        self,
        listener: EventListener,
        settings: Optional[Settings] = None,
        transport: Optional[HttpTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._listener = listener
        self._router = ProviderRouter(self.settings)
        self._transport = transport or HttpTransport(connect_timeout=self.settings.connect_timeout)
        self._chat = RequestLifecycle("chat")
        self._models = RequestLifecycle("models")
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_chat_request(self) -> Optional[str]:
        handle = self._chat.active
        return handle.id if handle else None

    # ------------------------------------------------------------------
    # Inbound API
    # ------------------------------------------------------------------

    def send_chat_request(
        self,
        provider: Provider | str,
        endpoint: str,
        api_key: str,
        model: str,
        messages: Iterable[ChatMessage | dict],
    ) -> str:
        """Start streaming a reply, replacing any chat request still in flight."""
        spec = RequestSpec(
            provider=provider,
            endpoint=endpoint,
            api_key=api_key or "",
            model=model,
            messages=list(messages),
        )
        chat_provider = self._router.get_provider(spec.provider)
        request = build_chat_request(spec, self._router)
        logger.info(
            "send_chat_request provider=%s model=%s endpoint=%s messages=%d",
            chat_provider.label, spec.model, spec.endpoint, len(spec.messages),
        )

        handle = self._chat.begin()
        handle.decoder = StreamDecoder(chat_provider.extract_chunk, handle.id, self._emit)
        handle.task = self._spawn(self._run_chat(handle, chat_provider, request))
        return handle.id

    def fetch_models(self, provider: Provider | str, endpoint: str, api_key: str) -> str:
        """Fetch the provider's model catalog, replacing any fetch still in flight."""
        chat_provider = self._router.get_provider(provider)
        request = build_models_request(provider, endpoint, api_key or "", self._router)
        logger.info("fetch_models provider=%s endpoint=%s", chat_provider.label, endpoint)

        handle = self._models.begin()
        handle.task = self._spawn(self._run_models(handle, chat_provider, request))
        return handle.id

    def cancel(self) -> None:
        """Stop the chat request in flight, if any. Safe to call repeatedly."""
        handle = self._chat.cancel()
        if handle is not None:
            self._emit(Done(request_id=handle.id))

    async def drain(self) -> None:
        """Wait until every transport task, including cancelled ones, has ended."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self._chat.cancel()
        self._models.cancel()
        await self.drain()
        await self._transport.aclose()

    # ------------------------------------------------------------------
    # Chat stream
    # ------------------------------------------------------------------

    async def _run_chat(self, handle: RequestHandle, provider: ChatProvider, request: HttpRequest) -> None:
        decoder = handle.decoder
        status = 0
        failure: Optional[str] = None
        try:
            status = await self._with_deadline(
                self._transport.stream(request, lambda chunk: self._feed(handle, decoder, chunk))
            )
        except asyncio.TimeoutError:
            logger.error("Chat request %s hit the %ss deadline", handle.id, self.settings.request_timeout)
            failure = timeout_message(self.settings.request_timeout)
        except httpx.HTTPError as e:
            logger.error("Chat request %s failed: %s", handle.id, e)
            failure = TRANSPORT_FAILURE
        except Exception:
            logger.exception("Chat request %s failed unexpectedly", handle.id)
            failure = TRANSPORT_FAILURE

        if not self._chat.complete(handle):
            return

        logger.info("Chat request %s completed status=%s failure=%s", handle.id, status, failure)
        if failure is None:
            decoder.close()
        if not decoder.error_reported:
            if failure is not None:
                self._emit(ErrorEvent(request_id=handle.id, message=failure))
            elif status >= 400:
                self._emit(ErrorEvent(request_id=handle.id, message=friendly_status_message(provider.label, status)))
        self._emit(Done(request_id=handle.id))

    def _feed(self, handle: RequestHandle, decoder: StreamDecoder, chunk: bytes) -> bool:
        if not self._chat.is_current(handle):
            return False
        decoder.write(chunk)
        # An error body stops the stream; the remaining bytes are not read
        return not decoder.cancelled

    # ------------------------------------------------------------------
    # Model catalog
    # ------------------------------------------------------------------

    async def _run_models(self, handle: RequestHandle, provider: ChatProvider, request: HttpRequest) -> None:
        status = 0
        body = ""
        failure: Optional[str] = None
        try:
            status, body = await self._with_deadline(self._transport.fetch(request))
        except asyncio.TimeoutError:
            failure = timeout_message(self.settings.request_timeout)
        except httpx.HTTPError as e:
            logger.error("Models request %s failed: %s", handle.id, e)
            failure = MODELS_TRANSPORT_FAILURE
        except Exception:
            logger.exception("Models request %s failed unexpectedly", handle.id)
            failure = MODELS_TRANSPORT_FAILURE

        if not self._models.complete(handle):
            return

        logger.debug("Models response length: %d bytes", len(body))
        if failure is None and has_error_payload(body):
            failure = extract_error_message(body) or UNREADABLE_API_ERROR
            logger.error("API returned error response: %s", failure)
        elif failure is None and status >= 400:
            failure = friendly_status_message(provider.label, status)

        if failure is not None:
            self._emit(ErrorEvent(request_id=handle.id, message=failure, source="models"))
            return
        models = provider.parse_models(body)
        logger.info("Received %d %s models", len(models), provider.label)
        self._emit(ModelsReceived(request_id=handle.id, models=models))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _with_deadline(self, aw: Awaitable[T]) -> T:
        timeout = self.settings.request_timeout
        if timeout and timeout > 0:
            return await asyncio.wait_for(aw, timeout)
        return await aw

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _emit(self, event: ClientEvent) -> None:
        try:
            self._listener(event)
        except Exception:
            # A broken listener must not take the stream down with it
            logger.exception("Event listener failed on %s", event.type)
