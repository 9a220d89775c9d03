"""Pytest fixtures for llmchat tests."""

import asyncio
from typing import List, Optional

import pytest

from llmchat.config import Settings
from llmchat.schemas.chat import HttpRequest


class ScriptedResponse:
    """One canned transport outcome.

    ``gate`` holds the request open after the chunks are delivered. With
    ``ignore_cancel`` the transport swallows cancellation and completes anyway,
    like a transport whose completion callback fires late.
    """

    def __init__(
        self,
        chunks=(),
        status: int = 200,
        body: str = "",
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        ignore_cancel: bool = False,
    ) -> None:
        self.chunks = list(chunks)
        self.status = status
        self.body = body
        self.error = error
        self.gate = gate
        self.ignore_cancel = ignore_cancel
        self.delivered = 0

    async def hold(self) -> None:
        if self.gate is None:
            return
        if self.ignore_cancel:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                pass
        else:
            await self.gate.wait()


class FakeTransport:
    """Stands in for HttpTransport, replaying scripted responses in order."""

    def __init__(self) -> None:
        self.scripts: List[ScriptedResponse] = []
        self.requests: List[HttpRequest] = []
        self.closed = False

    def add(self, **kwargs) -> ScriptedResponse:
        script = ScriptedResponse(**kwargs)
        self.scripts.append(script)
        return script

    async def stream(self, request, on_data):
        self.requests.append(request)
        script = self.scripts.pop(0)
        for chunk in script.chunks:
            await asyncio.sleep(0)
            script.delivered += 1
            if not on_data(chunk):
                break
        await script.hold()
        if script.error is not None:
            raise script.error
        return script.status

    async def fetch(self, request):
        self.requests.append(request)
        script = self.scripts.pop(0)
        await asyncio.sleep(0)
        await script.hold()
        if script.error is not None:
            raise script.error
        return script.status, script.body

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        anthropic_api_key="sk-ant-test",
        google_api_key="g-test",
        request_timeout=5.0,
        log_level="DEBUG",
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def events() -> list:
    return []
