from __future__ import annotations

import enum
import inspect
import logging
import typing as t
from collections import defaultdict

import httpx

from staticache._async_cache import AsyncStaticCache
from staticache._core._classifier import CACHE_MARKER_HEADER, content_type_for, is_cache_eligible_method
from staticache._core._headers import Headers
from staticache._core.models import Payload
from staticache._exceptions import StoreError
from staticache._utils import resolve_url

logger = logging.getLogger("staticache.events")

Listener = t.Callable[["AsyncEventRequest"], t.Union[None, t.Awaitable[None]]]


class ReadyState(enum.IntEnum):
    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    LOADING = 3
    DONE = 4


class AsyncEventRequest:
    """
    A request object whose completion is observed through events.

    Call ``open``, register listeners, then ``await send()``. When the response
    has been received the request moves to ``ReadyState.DONE`` and dispatches
    ``readystatechange`` followed by ``load``, or ``readystatechange`` followed by
    ``error`` if the transport failed. Listeners receive the request object and may
    be plain functions or coroutine functions.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self._transport = transport
        self._listeners: t.DefaultDict[str, t.List[Listener]] = defaultdict(list)
        self.method: t.Optional[str] = None
        self.url: t.Optional[str] = None
        self.request_headers = Headers()
        self._reset()

    def _reset(self) -> None:
        self.ready_state = ReadyState.UNSENT
        self.status = 0
        self.response = b""
        self.response_text = ""
        self.response_headers = Headers()
        self.error: t.Optional[BaseException] = None

    def add_event_listener(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def remove_event_listener(self, event: str, listener: Listener) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def open(self, method: str, url: t.Union[str, httpx.URL]) -> None:
        resolved = resolve_url(url)
        if resolved is None:
            raise TypeError(f"Expected a str or httpx.URL, got {type(url).__name__}")
        self._reset()
        self.method = method
        self.url = resolved
        self.request_headers = Headers()
        self.ready_state = ReadyState.OPENED

    def set_request_header(self, name: str, value: str) -> None:
        self.request_headers.add(name, value)

    def get_response_header(self, name: str) -> t.Optional[str]:
        return self.response_headers.get(name)

    async def send(self, body: t.Optional[bytes] = None) -> None:
        if self.ready_state != ReadyState.OPENED or self.method is None or self.url is None:
            raise RuntimeError("open() must be called before send()")

        try:
            request = httpx.Request(
                method=self.method,
                url=self.url,
                headers=self.request_headers.multi_items(),
                content=body,
            )
            response = await self._transport.handle_async_request(request)
            try:
                content = await response.aread()
            finally:
                await response.aclose()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"{self.method} {self.url} failed: {exc!r}")
            self.error = exc
            self.ready_state = ReadyState.DONE
            await self.dispatch_event("readystatechange")
            await self.dispatch_event("error")
            return

        headers = Headers.from_pairs(response.headers.multi_items())
        self._complete(response.status_code, headers, Payload.from_bytes(content))

        await self.dispatch_event("readystatechange")
        await self.dispatch_event("load")

    def _complete(self, status: int, headers: Headers, payload: Payload) -> None:
        self.status = status
        self.response_headers = headers
        self.response = payload.body
        self.response_text = payload.text
        self.ready_state = ReadyState.DONE

    async def dispatch_event(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            try:
                result = listener(self)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Listener for {event!r} failed")


class AsyncCacheRequest(AsyncEventRequest):
    """
    An ``AsyncEventRequest`` that answers GET requests for static resources from
    the cache.

    A cache hit never touches the transport: the request is completed with status
    200 and the stored body, and the completion events are dispatched from the
    cache's background task group after ``send`` has returned. A miss is sent as
    usual and stored once it loads with status 200.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport, cache: AsyncStaticCache) -> None:
        super().__init__(transport)
        self._cache = cache

    async def send(self, body: t.Optional[bytes] = None) -> None:
        if (
            self.ready_state == ReadyState.OPENED
            and is_cache_eligible_method(self.method)
            and self._cache.is_eligible(self.url)
        ):
            try:
                if await self._serve_from_cache():
                    return
            except Exception:
                logger.warning(f"Cache lookup failed for {self.url}, using the network", exc_info=True)

            self.remove_event_listener("load", self._store_on_load)
            self.add_event_listener("load", self._store_on_load)

        await super().send(body)

    async def _serve_from_cache(self) -> bool:
        assert self.url is not None
        entry = await self._cache.lookup(self.url)
        if entry is None:
            return False

        self._cache.background.spawn(self._dispatch_completion, name=f"complete {self.url}")
        self._complete(
            200,
            Headers({"Content-Type": content_type_for(entry.url), CACHE_MARKER_HEADER: "HIT"}),
            entry.payload,
        )
        logger.debug(f"Serving from cache: {entry.url}")

        if self._cache.is_stale(entry):
            self._cache.schedule_revalidation(entry.url, entry)
        return True

    async def _dispatch_completion(self) -> None:
        await self.dispatch_event("readystatechange")
        await self.dispatch_event("load")

    async def _store_on_load(self, request: AsyncEventRequest) -> None:
        self.remove_event_listener("load", self._store_on_load)
        if self.status != 200 or self.url is None:
            return
        try:
            await self._cache.store(self.url, self.response, self.get_response_header("etag"))
        except StoreError:
            logger.warning(f"Could not cache {self.url}", exc_info=True)
