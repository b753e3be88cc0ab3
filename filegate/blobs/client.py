"""Blob store interface and the HTTP fetcher used for blob URLs and proxying."""

import logging
from typing import AsyncIterator, Awaitable, Callable, Mapping, Optional, Protocol

import httpx

from filegate.errors import UpstreamError

log = logging.getLogger(__name__)


class UpstreamResponse:
    """Response of a blob fetch: status, headers and a body that can be streamed or read once."""

    def __init__(
        self,
        status_code: int,
        headers: Mapping[str, str],
        chunks: AsyncIterator[bytes],
        close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self.status_code = status_code
        # Header names are matched case-insensitively
        self.headers = {k.lower(): v for k, v in headers.items()}
        self._chunks = chunks
        self._close = close
        self._closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield body chunks as they arrive."""
        async for chunk in self._chunks:
            yield chunk

    async def read(self) -> bytes:
        """Buffer the whole body and close."""
        try:
            return b"".join([chunk async for chunk in self._chunks])
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Release the upstream connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            await self._close()


class BlobStore(Protocol):
    """Object store: put bytes at a path (returns a fetchable URL), fetch by URL.

    put never overwrites: an occupied path raises BlobExists.
    """

    async def put(self, path: str, data: bytes, content_type: Optional[str]) -> str: ...

    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> UpstreamResponse: ...


class HttpFetcher:
    """Fetch arbitrary URLs with httpx, streaming the body.

    The client lives as long as the returned response; closing the response
    closes both.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> UpstreamResponse:
        client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        try:
            request = client.build_request("GET", url, headers=dict(headers or {}))
            response = await client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            await client.aclose()
            log.warning("Upstream fetch failed url=%s: %s", url, e)
            raise UpstreamError() from e

        async def close() -> None:
            await response.aclose()
            await client.aclose()

        log.debug("Upstream fetch url=%s status=%d", url, response.status_code)
        return UpstreamResponse(
            status_code=response.status_code,
            headers=response.headers,
            chunks=response.aiter_bytes(),
            close=close,
        )
