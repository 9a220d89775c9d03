"""Tests for LLMClient: streaming, cancellation, errors and model catalogs."""

import asyncio
from unittest.mock import MagicMock, call, patch

import httpx
import pytest

from llmchat.client.llm_client import LLMClient
from llmchat.core.errors import MODELS_TRANSPORT_FAILURE, TRANSPORT_FAILURE, UNREADABLE_API_ERROR
from llmchat.schemas.chat import ChatMessage, Provider
from llmchat.schemas.events import Done, ErrorEvent, ModelsReceived, TextDelta

MESSAGES = [ChatMessage(role="user", content="Hi")]


def openai_chunk(text: str) -> bytes:
    return ('data: {"choices":[{"delta":{"content":"%s"}}]}\n\n' % text).encode()


@pytest.fixture
def client(settings, transport, events):
    return LLMClient(events.append, settings=settings, transport=transport)


def send(client, provider=Provider.OPENAI):
    return client.send_chat_request(provider, "https://api.example.com/v1", "KEY", "m-1", MESSAGES)


def of_request(events, request_id):
    return [e for e in events if e.request_id == request_id]


def dones(events):
    return [e for e in events if isinstance(e, Done)]


@pytest.mark.asyncio
async def test_stream_emits_deltas_then_done(client, transport, events):
    transport.add(chunks=[openai_chunk("Hel"), openai_chunk("lo"), b"data: [DONE]\n\n"])
    request_id = send(client)
    await client.drain()

    assert events == [
        TextDelta(request_id=request_id, text="Hel"),
        TextDelta(request_id=request_id, text="lo"),
        Done(request_id=request_id),
    ]
    assert transport.requests[0].url == "https://api.example.com/v1/chat/completions"
    assert client.active_chat_request is None


@pytest.mark.asyncio
async def test_provider_error_then_done(client, transport, events):
    script = transport.add(
        chunks=[b'{"error": {"message": "Invalid API key", "type": "auth"}}', openai_chunk("never")],
        status=401,
    )
    request_id = send(client)
    await client.drain()

    assert events == [
        ErrorEvent(request_id=request_id, message="Invalid API key"),
        Done(request_id=request_id),
    ]
    # Reading stops at the error body
    assert script.delivered == 1


@pytest.mark.asyncio
async def test_http_status_without_error_body(client, transport, events):
    transport.add(chunks=[b"Too Many Requests"], status=429)
    request_id = send(client, Provider.ANTHROPIC)
    await client.drain()

    error, done = events
    assert isinstance(error, ErrorEvent)
    assert error.message.startswith("[Anthropic] Too many requests.")
    assert done == Done(request_id=request_id)


@pytest.mark.asyncio
async def test_transport_failure(client, transport, events):
    transport.add(chunks=[openai_chunk("partial")], error=httpx.ConnectError("boom"))
    request_id = send(client)
    await client.drain()

    assert events == [
        TextDelta(request_id=request_id, text="partial"),
        ErrorEvent(request_id=request_id, message=TRANSPORT_FAILURE),
        Done(request_id=request_id),
    ]


@pytest.mark.asyncio
async def test_deadline(settings, transport, events):
    settings.request_timeout = 0.05
    client = LLMClient(events.append, settings=settings, transport=transport)
    transport.add(chunks=[openai_chunk("slow")], gate=asyncio.Event())
    request_id = send(client)
    await client.drain()

    assert events == [
        TextDelta(request_id=request_id, text="slow"),
        ErrorEvent(request_id=request_id, message="Request timed out after 0.05 seconds"),
        Done(request_id=request_id),
    ]


@pytest.mark.asyncio
async def test_explicit_cancel_emits_single_done(client, transport, events):
    gate = asyncio.Event()
    transport.add(chunks=[openai_chunk("a")], gate=gate)
    request_id = send(client)
    await asyncio.sleep(0.01)

    client.cancel()
    client.cancel()
    gate.set()
    await client.drain()

    assert events == [
        TextDelta(request_id=request_id, text="a"),
        Done(request_id=request_id),
    ]


@pytest.mark.asyncio
async def test_cancel_when_idle_is_noop(client, events):
    client.cancel()
    assert events == []


@pytest.mark.asyncio
async def test_new_request_supersedes_old(client, transport, events):
    transport.add(chunks=[openai_chunk("old")], gate=asyncio.Event())
    transport.add(chunks=[openai_chunk("new")])
    first = send(client)
    await asyncio.sleep(0.01)
    second = send(client)
    await client.drain()

    assert of_request(events, first) == [TextDelta(request_id=first, text="old")]
    assert of_request(events, second) == [
        TextDelta(request_id=second, text="new"),
        Done(request_id=second),
    ]


@pytest.mark.asyncio
async def test_late_completion_after_cancel_is_silent(client, transport, events):
    """A transport that finishes after cancellation produces no error and no second Done."""
    transport.add(chunks=[openai_chunk("a")], status=500, gate=asyncio.Event(), ignore_cancel=True)
    request_id = send(client)
    await asyncio.sleep(0.01)
    client.cancel()
    await client.drain()

    assert events == [
        TextDelta(request_id=request_id, text="a"),
        Done(request_id=request_id),
    ]
    assert len(dones(events)) == 1


@pytest.mark.asyncio
async def test_late_completion_after_supersede_is_silent(client, transport, events):
    transport.add(chunks=[], status=500, gate=asyncio.Event(), ignore_cancel=True)
    transport.add(chunks=[openai_chunk("b")])
    first = send(client)
    await asyncio.sleep(0.01)
    second = send(client)
    await client.drain()

    assert of_request(events, first) == []
    assert dones(events) == [Done(request_id=second)]


@pytest.mark.asyncio
async def test_listener_failure_does_not_break_stream(settings, transport):
    seen = []

    def listener(event):
        seen.append(event)
        if isinstance(event, TextDelta):
            raise RuntimeError("ui went away")

    client = LLMClient(listener, settings=settings, transport=transport)
    transport.add(chunks=[openai_chunk("a"), openai_chunk("b")])
    send(client)
    await client.drain()

    assert [e.type for e in seen] == ["text_delta", "text_delta", "done"]


@pytest.mark.asyncio
async def test_unknown_provider_raises_before_sending(client, transport):
    with pytest.raises(ValueError):
        client.send_chat_request("mistral", "https://x", "KEY", "m", MESSAGES)
    assert client.active_chat_request is None
    assert transport.requests == []


@pytest.mark.asyncio
async def test_fetch_models(client, transport, events):
    transport.add(body='{"data":[{"id":"gpt-4o"},{"id":"whisper-1"},{"id":"o1"}]}')
    request_id = client.fetch_models(Provider.OPENAI, "https://api.openai.com/v1", "KEY")
    await client.drain()

    assert events == [ModelsReceived(request_id=request_id, models=["gpt-4o", "o1"])]
    assert transport.requests[0].method == "GET"


@pytest.mark.asyncio
async def test_fetch_models_error_body(client, transport, events):
    transport.add(status=401, body='{"error":{"message":"Incorrect API key provided"}}')
    request_id = client.fetch_models(Provider.OPENAI, "https://api.openai.com/v1", "KEY")
    await client.drain()

    assert events == [ErrorEvent(request_id=request_id, message="Incorrect API key provided", source="models")]


@pytest.mark.asyncio
async def test_fetch_models_unreadable_error(client, transport, events):
    transport.add(body='{"error":{"code":1,"message":')
    client.fetch_models(Provider.GEMINI, "https://g.example.com/v1beta", "KEY")
    await client.drain()

    assert [e.message for e in events] == [UNREADABLE_API_ERROR]


@pytest.mark.asyncio
async def test_fetch_models_transport_failure(client, transport, events):
    transport.add(error=httpx.ReadTimeout("slow"))
    client.fetch_models(Provider.ANTHROPIC, "https://api.anthropic.com/v1", "KEY")
    await client.drain()

    assert [(e.type, e.message, e.source) for e in events] == [("error", MODELS_TRANSPORT_FAILURE, "models")]


@pytest.mark.asyncio
async def test_fetch_models_superseded(client, transport, events):
    transport.add(body='{"data":[{"id":"claude-old"}]}', gate=asyncio.Event(), ignore_cancel=True)
    transport.add(body='{"data":[{"id":"claude-new"}]}')
    client.fetch_models(Provider.ANTHROPIC, "https://api.anthropic.com/v1", "KEY")
    await asyncio.sleep(0.01)
    second = client.fetch_models(Provider.ANTHROPIC, "https://api.anthropic.com/v1", "KEY")
    await client.drain()

    assert events == [ModelsReceived(request_id=second, models=["claude-new"])]


@pytest.mark.asyncio
async def test_chat_and_models_are_independent(client, transport, events):
    gate = asyncio.Event()
    transport.add(chunks=[openai_chunk("x")], gate=gate)
    transport.add(body='{"data":[{"id":"gpt-4"}]}')
    chat_id = send(client)
    await asyncio.sleep(0.01)
    client.fetch_models(Provider.OPENAI, "https://api.openai.com/v1", "KEY")
    await asyncio.sleep(0.01)
    assert client.active_chat_request == chat_id
    gate.set()
    await client.drain()

    assert dones(events) == [Done(request_id=chat_id)]
    assert any(isinstance(e, ModelsReceived) for e in events)


@pytest.mark.asyncio
async def test_aclose_cancels_and_closes_transport(client, transport, events):
    transport.add(chunks=[], gate=asyncio.Event())
    send(client)
    await asyncio.sleep(0.01)
    await client.aclose()

    assert transport.closed
    assert events == []


@pytest.mark.asyncio
async def test_listener_called_once_per_event(settings, transport):
    listener = MagicMock()
    client = LLMClient(listener, settings=settings, transport=transport)
    transport.add(chunks=[openai_chunk("a")])
    request_id = send(client)
    await client.drain()

    assert listener.call_args_list == [
        call(TextDelta(request_id=request_id, text="a")),
        call(Done(request_id=request_id)),
    ]


def test_default_transport_uses_connect_timeout(settings):
    settings.connect_timeout = 3.5
    with patch("llmchat.client.llm_client.HttpTransport") as transport_cls:
        LLMClient(MagicMock(), settings=settings)
    transport_cls.assert_called_once_with(connect_timeout=3.5)
