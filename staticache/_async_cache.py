from __future__ import annotations

import logging
import types
import typing as tp
from dataclasses import replace

import anyio

from staticache._core._classifier import is_cache_eligible
from staticache._core._freshness import is_stale
from staticache._core._headers import Headers
from staticache._core._options import CacheOptions
from staticache._core._storages._async_base import AsyncBaseStorage
from staticache._core._storages._async_sqlite import AsyncSqliteStorage
from staticache._core.models import CacheStatus, Entry, Payload, Request
from staticache._exceptions import StaticCacheError, StoreError, TransportError
from staticache._fetcher import RequestSender
from staticache._scheduler import BackgroundTasks
from staticache._utils import now_ms, resolve_url

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("staticache.cache")


class AsyncStaticCache:
    """
    The caching and revalidation engine shared by the interception adapters.

    This class is independent of any specific HTTP library. Network access goes
    through the injected ``request_sender``, entries live in ``storage``, and
    background revalidations run in a task group that exists between ``open`` and
    ``close`` (or for the duration of an ``async with`` block).

    Args:
        request_sender: Callable that sends requests to the origin.
        storage: Storage backend for cache entries. Defaults to AsyncSqliteStorage.
        options: Cache configuration. Defaults to CacheOptions().
    """

    def __init__(
        self,
        request_sender: RequestSender,
        storage: AsyncBaseStorage | None = None,
        options: CacheOptions | None = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage if storage is not None else AsyncSqliteStorage()
        self.options = options if options is not None else CacheOptions()
        self.background = BackgroundTasks()

    async def __aenter__(self) -> "Self":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        await self.close()

    async def open(self) -> None:
        await self.background.open()
        try:
            await self.storage.open()
        except StoreError:
            # Every lookup will fail the same way and fall through to the network.
            logger.warning("Could not open the cache storage", exc_info=True)

    async def close(self) -> None:
        await self.background.close()
        await self.storage.close()

    def is_eligible(self, url: tp.Optional[str]) -> bool:
        return is_cache_eligible(url, self.options.extensions)

    def is_stale(self, entry: Entry) -> bool:
        return is_stale(entry, now_ms(), self.options.max_age)

    async def lookup(self, url: str) -> tp.Optional[Entry]:
        """
        Return the stored entry for ``url``.

        Raises:
            StoreError: If the storage could not be read.
        """
        entry = await self.storage.get(url)
        logger.debug(f"Cache {'hit' if entry is not None else 'miss'} for {url}")
        return entry

    async def store(self, url: str, body: bytes, etag: tp.Optional[str] = None) -> Entry:
        """
        Store a freshly fetched body for ``url``, replacing any previous entry.

        Raises:
            StoreError: If the storage could not be written.
        """
        entry = Entry(url=url, payload=Payload.from_bytes(body), etag=etag, timestamp=now_ms())
        await self.storage.put(entry)
        logger.debug(f"Stored {len(entry.payload)} bytes for {url}")
        return entry

    async def revalidate(self, url: str, entry: Entry) -> tp.Optional[Entry]:
        """
        Check ``entry`` against the origin and update the store with the outcome.

        Sends ``If-None-Match`` when the entry has an etag, otherwise refetches
        unconditionally. A 304 refreshes only the timestamp; a successful response
        replaces the payload and etag. Any other outcome leaves the entry as it was.

        Returns:
            The entry now in the store, or None if the revalidation failed.
        """
        headers = Headers()
        if entry.etag:
            headers.add("If-None-Match", entry.etag)

        try:
            response = await self.send_request(Request(method="GET", url=url, headers=headers))
        except TransportError:
            logger.warning(f"Background revalidation of {url} failed", exc_info=True)
            return None

        if response.status_code == 304:
            updated = replace(entry, timestamp=max(now_ms(), entry.timestamp))
            message = f"Cached resource not modified: {url}"
        elif response.is_success:
            updated = Entry(
                url=url,
                payload=Payload.from_bytes(response.content),
                etag=response.headers.get("etag"),
                timestamp=max(now_ms(), entry.timestamp),
            )
            message = f"Cached resource updated: {url}"
        else:
            logger.warning(f"Background revalidation of {url} returned status {response.status_code}")
            return None

        try:
            await self.storage.put(updated)
        except StoreError:
            logger.warning(f"Could not save the revalidated entry for {url}", exc_info=True)
            return None

        logger.debug(message)
        return updated

    def schedule_revalidation(self, url: str, entry: Entry) -> bool:
        """
        Start revalidating ``entry`` in the background without waiting for it.

        Returns:
            False if the background task group is not running and nothing was scheduled.
        """
        if not self.background.running:
            logger.warning(f"Skipping revalidation of {url}: the cache is not open")
            return False
        logger.debug(f"Revalidating stale resource in background: {url}")
        self.background.spawn(self.revalidate, url, entry, name=f"revalidate {url}")
        return True

    async def consider_for_cache(self, resource: tp.Any) -> tp.Optional[Entry]:
        """
        Warm the cache with a resource discovered outside of any request.

        Missing resources are fetched once and stored, stale ones are revalidated in
        the background. Failures are logged and confined to this resource.

        Returns:
            The entry stored for the resource, or None if it is not cacheable or
            could not be fetched.
        """
        url = resolve_url(resource)
        if url is None or not self.is_eligible(url):
            return None

        try:
            entry = await self.lookup(url)
            if entry is not None:
                if self.is_stale(entry):
                    self.schedule_revalidation(url, entry)
                return entry

            response = await self.send_request(Request(method="GET", url=url))
            if not response.is_success:
                logger.debug(f"Not caching {url}: origin returned status {response.status_code}")
                return None

            entry = await self.store(url, response.content, response.headers.get("etag"))
            logger.debug(f"Pre-cached resource: {url}")
            return entry
        except StaticCacheError:
            logger.warning(f"Failed to cache resource {url}", exc_info=True)
            return None

    async def warm_up(self, resources: tp.Iterable[tp.Any]) -> None:
        """
        Consider every resource for caching concurrently.
        """
        async with anyio.create_task_group() as task_group:
            for resource in resources:
                task_group.start_soon(self.consider_for_cache, resource)

    async def clear(self) -> None:
        await self.storage.clear()
        logger.debug("Cache cleared")

    async def status(self) -> CacheStatus:
        return CacheStatus(
            count=await self.storage.count(),
            total_bytes=await self.storage.total_bytes(),
        )

    async def wait_background_tasks(self) -> None:
        await self.background.join()
