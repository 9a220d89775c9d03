from __future__ import annotations
import logging
from typing import Callable, Optional, Tuple
import httpx

from llmchat.schemas.chat import HttpRequest

logger = logging.getLogger(__name__)

# Return False to stop reading the response
DataCallback = Callable[[bytes], bool]


class HttpTransport:
    """Runs requests on a shared ``httpx.AsyncClient``.

    Raises ``httpx.HTTPError`` for transport failures; HTTP error statuses are
    returned, not raised, because their bodies still carry provider errors.
    """

    def __init__(self, connect_timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None) -> None:
        timeout = httpx.Timeout(connect=connect_timeout, read=120.0, write=30.0, pool=10.0)
        self._client = client or httpx.AsyncClient(timeout=timeout, trust_env=True)

    async def stream(self, request: HttpRequest, on_data: DataCallback) -> int:
        async with self._client.stream(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body,
        ) as resp:
            logger.debug("Stream opened status=%d url=%s", resp.status_code, request.url)
            async for chunk in resp.aiter_bytes():
                if not on_data(chunk):
                    break
            return resp.status_code

    async def fetch(self, request: HttpRequest) -> Tuple[int, str]:
        resp = await self._client.request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body,
        )
        logger.debug("Fetched status=%d bytes=%d url=%s", resp.status_code, len(resp.content), request.url)
        return resp.status_code, resp.text

    async def aclose(self) -> None:
        await self._client.aclose()
