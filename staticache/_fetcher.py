from __future__ import annotations

from typing import Awaitable, Callable

import httpx

from staticache._core._headers import Headers
from staticache._core.models import Request, Response
from staticache._exceptions import TransportError

RequestSender = Callable[[Request], Awaitable[Response]]
"""Performs a request and returns the complete response, raising ``TransportError`` on failure."""

# The body is read (and decoded) in full, so the framing headers of the wire no longer apply.
_WIRE_HEADERS = ("content-encoding", "content-length", "transfer-encoding")


class AsyncTransportSender:
    """
    A ``RequestSender`` backed by an httpx transport.

    The transport is used directly, bypassing any client-level policy, so whatever
    the transport can reach, the cache can revalidate.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self.transport = transport

    async def __call__(self, request: Request) -> Response:
        try:
            httpx_request = httpx.Request(
                method=request.method,
                url=request.url,
                headers=request.headers.multi_items(),
            )
            httpx_response = await self.transport.handle_async_request(httpx_request)
            try:
                # 304 should not have a body, but we read it to ensure we'll not let the stream unconsumed
                content = await httpx_response.aread()
            finally:
                await httpx_response.aclose()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"{request.method} {request.url} failed: {exc!r}") from exc

        return Response(
            status_code=httpx_response.status_code,
            headers=Headers.from_pairs(httpx_response.headers.multi_items(), exclude=_WIRE_HEADERS),
            content=content,
        )
