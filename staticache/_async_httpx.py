from __future__ import annotations

import logging
import types
import typing as t

import httpx

from staticache._async_cache import AsyncStaticCache
from staticache._async_events import AsyncCacheRequest
from staticache._core._classifier import CACHE_MARKER_HEADER, content_type_for, is_cache_eligible_method
from staticache._core._options import CacheOptions
from staticache._core._storages._async_base import AsyncBaseStorage
from staticache._core.models import Entry, ResponseMetadata
from staticache._exceptions import StoreError
from staticache._fetcher import AsyncTransportSender
from staticache._utils import resolve_url

if t.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("staticache.transport")


class AsyncCacheTransport(httpx.AsyncBaseTransport):
    """
    An HTTPX transport that serves static resources from a persistent cache.

    GET requests for static resources are answered from the cache when an entry
    exists, and stored in it otherwise. Every other request, and every request the
    cache fails to handle, goes to ``next_transport`` untouched.

    Args:
        next_transport: The transport that actually talks to the network.
        cache: Engine to use. When omitted, one is created from ``storage`` and
            ``options`` and owned by this transport.
        storage: Storage backend for a transport-owned engine.
        options: Configuration for a transport-owned engine.
    """

    def __init__(
        self,
        next_transport: httpx.AsyncBaseTransport,
        cache: AsyncStaticCache | None = None,
        storage: AsyncBaseStorage | None = None,
        options: CacheOptions | None = None,
    ) -> None:
        self.next_transport = next_transport
        self._owns_cache = cache is None
        self.cache: AsyncStaticCache = (
            cache
            if cache is not None
            else AsyncStaticCache(
                request_sender=AsyncTransportSender(next_transport),
                storage=storage,
                options=options,
            )
        )
        self.storage = self.cache.storage

    async def __aenter__(self) -> "Self":
        await self.next_transport.__aenter__()
        if self._owns_cache:
            await self.cache.open()
        return self

    async def __aexit__(
        self,
        exc_type: t.Optional[t.Type[BaseException]] = None,
        exc_value: t.Optional[BaseException] = None,
        traceback: t.Optional[types.TracebackType] = None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        # Background revalidations still use the next transport, let them finish first.
        if self._owns_cache:
            await self.cache.close()
        await self.next_transport.aclose()

    def create_request(self) -> AsyncCacheRequest:
        """
        Create an event-driven request object sharing this transport's cache.
        """
        return AsyncCacheRequest(self.next_transport, self.cache)

    async def handle_async_request(
        self,
        request: httpx.Request,
    ) -> httpx.Response:
        try:
            url = resolve_url(request)
            if url is None or not is_cache_eligible_method(request.method) or not self.cache.is_eligible(url):
                return await self.next_transport.handle_async_request(request)

            try:
                entry = await self.cache.lookup(url)
            except StoreError:
                logger.warning(f"Cache lookup failed for {url}, using the network", exc_info=True)
                entry = None

            if entry is not None:
                return await self._serve_from_cache(entry)

            return await self._fetch_and_store(url, request)
        except Exception:
            logger.warning(f"Cache layer failed for {request.method} {request.url}, bypassing it", exc_info=True)

        return await self.next_transport.handle_async_request(request)

    async def _serve_from_cache(self, entry: Entry) -> httpx.Response:
        stale = self.cache.is_stale(entry)
        if stale and self.cache.background.running:
            self.cache.schedule_revalidation(entry.url, entry)
        elif stale:
            # Without an open cache nothing runs background tasks, so revalidate before answering.
            logger.debug(f"Revalidating stale resource inline: {entry.url}")
            updated = await self.cache.revalidate(entry.url, entry)
            if updated is not None:
                entry, stale = updated, False

        logger.debug(f"Serving from cache: {entry.url}")
        metadata = ResponseMetadata(
            staticache_from_cache=True,
            staticache_stored=False,
            staticache_stale=stale,
            staticache_stored_at=entry.timestamp,
        )
        return httpx.Response(
            status_code=200,
            headers={
                "Content-Type": content_type_for(entry.url),
                CACHE_MARKER_HEADER: "HIT",
            },
            content=entry.payload.body,
            extensions=dict(metadata),
        )

    async def _fetch_and_store(self, url: str, request: httpx.Request) -> httpx.Response:
        response = await self.next_transport.handle_async_request(request)
        if not response.is_success:
            return response

        try:
            content = await response.aread()
        finally:
            await response.aclose()

        stored = True
        try:
            await self.cache.store(url, content, response.headers.get("etag"))
        except StoreError:
            logger.warning(f"Could not cache {url}", exc_info=True)
            stored = False

        # The network stream is consumed and content-decoded, rebuild the response from the bytes.
        headers = [
            (key, value)
            for key, value in response.headers.multi_items()
            if key.lower() not in ("content-encoding", "transfer-encoding", "content-length")
        ]
        metadata = ResponseMetadata(
            staticache_from_cache=False,
            staticache_stored=stored,
            staticache_stale=False,
        )
        return httpx.Response(
            status_code=response.status_code,
            headers=headers,
            content=content,
            extensions={**response.extensions, **metadata},
        )


class _NetworkRoute(httpx.AsyncBaseTransport):
    """
    Sends a request down the transport a client would route it to, below the cache layer.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        transport = self._client._transport_for_url(request.url)
        if isinstance(transport, AsyncCacheTransport):
            transport = transport.next_transport
        assert isinstance(transport, httpx.AsyncBaseTransport)
        return await transport.handle_async_request(request)


class AsyncCacheClient(httpx.AsyncClient):
    """
    An ``httpx.AsyncClient`` whose default and proxy transports share one cache.

    Accepts every ``httpx.AsyncClient`` argument, plus ``storage`` and ``options``
    for the cache. A transport given with ``transport=`` is used as is. Revalidations
    go out through the same transport, and proxy, as the request that found the
    entry stale.
    """

    def __init__(
        self,
        *args: t.Any,
        storage: AsyncBaseStorage | None = None,
        options: CacheOptions | None = None,
        **kwargs: t.Any,
    ) -> None:
        self.storage = storage
        self.options = options
        self.cache: AsyncStaticCache | None = None
        super().__init__(*args, **kwargs)

    def _with_cache(self, transport: httpx.AsyncBaseTransport) -> AsyncCacheTransport:
        if self.cache is None:
            self.cache = AsyncStaticCache(
                request_sender=AsyncTransportSender(_NetworkRoute(self)),
                storage=self.storage,
                options=self.options,
            )
        return AsyncCacheTransport(next_transport=transport, cache=self.cache)

    def _init_transport(self, *args: t.Any, **kwargs: t.Any) -> httpx.AsyncBaseTransport:
        transport = super()._init_transport(*args, **kwargs)
        if kwargs.get("transport") is not None:
            return transport
        return self._with_cache(transport)

    def _init_proxy_transport(self, *args: t.Any, **kwargs: t.Any) -> httpx.AsyncBaseTransport:
        return self._with_cache(super()._init_proxy_transport(*args, **kwargs))

    async def __aenter__(self) -> "Self":
        await super().__aenter__()
        if self.cache is not None:
            await self.cache.open()
        return self

    async def __aexit__(
        self,
        exc_type: t.Optional[t.Type[BaseException]] = None,
        exc_value: t.Optional[BaseException] = None,
        traceback: t.Optional[types.TracebackType] = None,
    ) -> None:
        # Background revalidations still use the transports, let them finish first.
        if self.cache is not None:
            await self.cache.close()
        await super().__aexit__(exc_type, exc_value, traceback)

    async def aclose(self) -> None:
        if self.cache is not None:
            await self.cache.close()
        await super().aclose()
