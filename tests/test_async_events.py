from __future__ import annotations

import typing as tp
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import httpx
import pytest
from inline_snapshot import snapshot
from time_machine import travel

from staticache import AsyncStaticCache, AsyncTransportSender, Entry, Payload
from staticache.httpx import AsyncCacheRequest, AsyncEventRequest, ReadyState

URL = "https://example.com/app.js"
START = datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC"))
START_MS = 1_704_067_200_000


def record_events(request: AsyncEventRequest, *events: str) -> tp.List[str]:
    seen: tp.List[str] = []
    for event in events:
        request.add_event_listener(event, lambda r, event=event: seen.append(f"{event}:{r.ready_state.name}"))
    return seen


def make_cache(origin, storage) -> AsyncStaticCache:
    return AsyncStaticCache(request_sender=AsyncTransportSender(origin.transport), storage=storage)


@pytest.mark.anyio
async def test_send_dispatches_completion_events(origin) -> None:
    origin.queue(httpx.Response(200, content=b"hello", headers={"ETag": '"v1"'}))
    request = AsyncEventRequest(origin.transport)
    seen = record_events(request, "readystatechange", "load", "error")

    request.open("GET", "https://example.com/api/data")
    assert request.ready_state == ReadyState.OPENED

    await request.send()

    assert seen == ["readystatechange:DONE", "load:DONE"]
    assert request.status == 200
    assert request.response == b"hello"
    assert request.response_text == "hello"
    assert request.get_response_header("etag") == '"v1"'
    assert request.get_response_header("x-missing") is None


@pytest.mark.anyio
async def test_send_passes_method_headers_and_body(origin) -> None:
    origin.queue(httpx.Response(204))
    request = AsyncEventRequest(origin.transport)

    request.open("PUT", httpx.URL("https://example.com/upload"))
    request.set_request_header("X-Token", "secret")
    await request.send(b"payload")

    sent = origin.requests[0]
    assert sent.method == "PUT"
    assert str(sent.url) == "https://example.com/upload"
    assert sent.headers["X-Token"] == "secret"
    assert sent.content == b"payload"
    assert request.status == 204


@pytest.mark.anyio
async def test_transport_failure_dispatches_error(origin) -> None:
    request = AsyncEventRequest(origin.transport)
    seen = record_events(request, "readystatechange", "load", "error")

    request.open("GET", URL)
    await request.send()

    assert seen == ["readystatechange:DONE", "error:DONE"]
    assert request.status == 0
    assert isinstance(request.error, httpx.ConnectError)


@pytest.mark.anyio
async def test_send_requires_open(origin) -> None:
    request = AsyncEventRequest(origin.transport)

    with pytest.raises(RuntimeError):
        await request.send()


def test_open_rejects_unsupported_url(origin) -> None:
    request = AsyncEventRequest(origin.transport)

    with pytest.raises(TypeError):
        request.open("GET", 42)  # type: ignore[arg-type]


@pytest.mark.anyio
async def test_async_listeners_are_awaited_and_failures_logged(origin, caplog: pytest.LogCaptureFixture) -> None:
    origin.queue(httpx.Response(200, content=b"hello"))
    request = AsyncEventRequest(origin.transport)
    seen: tp.List[str] = []

    def broken(r: AsyncEventRequest) -> None:
        raise ValueError("listener bug")

    async def collect(r: AsyncEventRequest) -> None:
        seen.append(r.response_text)

    request.add_event_listener("load", broken)
    request.add_event_listener("load", collect)
    request.open("GET", URL)

    with caplog.at_level("ERROR", logger="staticache"):
        await request.send()

    assert seen == ["hello"]
    assert caplog.messages == snapshot(["Listener for 'load' failed"])


@pytest.mark.anyio
async def test_removed_listener_is_not_called(origin) -> None:
    origin.queue(httpx.Response(200))
    request = AsyncEventRequest(origin.transport)
    seen: tp.List[str] = []

    def listener(r: AsyncEventRequest) -> None:
        seen.append("load")

    request.add_event_listener("load", listener)
    request.remove_event_listener("load", listener)
    request.open("GET", URL)
    await request.send()

    assert seen == []


@pytest.mark.anyio
async def test_cache_miss_is_stored_on_load(origin, storage) -> None:
    origin.queue(httpx.Response(200, content=b"console.log(1)", headers={"ETag": '"v1"'}))

    with travel(START, tick=False):
        async with make_cache(origin, storage) as cache:
            request = AsyncCacheRequest(origin.transport, cache)
            seen = record_events(request, "readystatechange", "load")
            request.open("GET", URL)
            await request.send()

            assert await storage.get(URL) == Entry(
                url=URL,
                payload=Payload.from_bytes(b"console.log(1)"),
                etag='"v1"',
                timestamp=START_MS,
            )

    assert seen == ["readystatechange:DONE", "load:DONE"]
    assert request.response == b"console.log(1)"


@pytest.mark.anyio
async def test_cache_hit_completes_without_network(origin, storage) -> None:
    await storage.put(Entry(url=URL, payload=Payload.from_bytes(b"console.log(1)"), etag='"v1"', timestamp=2**62))

    async with make_cache(origin, storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        seen = record_events(request, "readystatechange", "load")
        request.open("GET", URL)
        await request.send()

        # Completion is observed through the events, which fire after send() returns.
        assert seen == []
        assert request.ready_state == ReadyState.DONE
        assert request.status == 200
        assert request.response == b"console.log(1)"
        assert request.response_text == "console.log(1)"
        assert request.get_response_header("Content-Type") == "application/javascript"
        assert request.get_response_header("X-Static-Cache") == "HIT"

        await cache.wait_background_tasks()

        assert seen == ["readystatechange:DONE", "load:DONE"]

    assert origin.requests == []


@pytest.mark.anyio
async def test_stale_hit_triggers_revalidation(origin, storage) -> None:
    await storage.put(Entry(url=URL, payload=Payload.from_bytes(b"console.log(1)"), etag='"v1"', timestamp=START_MS))
    origin.queue(httpx.Response(304))

    with travel(START + timedelta(days=1, seconds=1), tick=False):
        async with make_cache(origin, storage) as cache:
            request = AsyncCacheRequest(origin.transport, cache)
            request.open("GET", URL)
            await request.send()
            await cache.wait_background_tasks()

            stored = await storage.get(URL)

    assert request.response == b"console.log(1)"
    assert len(origin.requests) == 1
    assert origin.requests[0].headers["If-None-Match"] == '"v1"'
    assert stored is not None
    assert stored.timestamp == START_MS + 86_401_000


@pytest.mark.anyio
async def test_failed_lookup_falls_back_to_network(origin, failing_storage) -> None:
    failing_storage.fail_get = True
    origin.queue(httpx.Response(200, content=b"console.log(1)"))

    async with make_cache(origin, failing_storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        seen = record_events(request, "load")
        request.open("GET", URL)
        await request.send()

    assert seen == ["load:DONE"]
    assert request.response == b"console.log(1)"
    assert len(origin.requests) == 1


@pytest.mark.anyio
async def test_hit_on_closed_cache_falls_back_to_network(origin, storage) -> None:
    await storage.put(Entry(url=URL, payload=Payload.from_bytes(b"cached"), timestamp=2**62))
    origin.queue(httpx.Response(200, content=b"fresh"))
    cache = make_cache(origin, storage)

    request = AsyncCacheRequest(origin.transport, cache)
    seen = record_events(request, "load")
    request.open("GET", URL)
    await request.send()

    assert seen == ["load:DONE"]
    assert request.response == b"fresh"
    assert len(origin.requests) == 1


@pytest.mark.anyio
async def test_post_bypasses_cache(origin, storage) -> None:
    await storage.put(Entry(url=URL, payload=Payload.from_bytes(b"cached"), timestamp=2**62))
    origin.queue(httpx.Response(200, content=b"posted"))

    async with make_cache(origin, storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        request.open("POST", URL)
        await request.send(b"data")

        stored = await storage.get(URL)

    assert request.response == b"posted"
    assert origin.requests[0].method == "POST"
    assert stored is not None
    assert stored.payload.body == b"cached"


@pytest.mark.anyio
async def test_non_static_url_is_not_stored(origin, storage) -> None:
    origin.queue(httpx.Response(200, json={"ok": True}))

    async with make_cache(origin, storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        request.open("GET", "https://example.com/api/data")
        await request.send()

        assert await storage.count() == 0

    assert request.status == 200


@pytest.mark.anyio
async def test_unsuccessful_response_is_not_stored(origin, storage) -> None:
    origin.queue(httpx.Response(404, content=b"missing"))

    async with make_cache(origin, storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        seen = record_events(request, "load")
        request.open("GET", URL)
        await request.send()

        assert await storage.count() == 0

    assert seen == ["load:DONE"]
    assert request.status == 404


@pytest.mark.anyio
async def test_store_failure_does_not_break_request(origin, failing_storage) -> None:
    failing_storage.fail_put = True
    origin.queue(httpx.Response(200, content=b"console.log(1)"))

    async with make_cache(origin, failing_storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        seen = record_events(request, "load")
        request.open("GET", URL)
        await request.send()

    assert seen == ["load:DONE"]
    assert request.response == b"console.log(1)"
    assert failing_storage.entries == {}


@pytest.mark.anyio
async def test_malformed_url_dispatches_error(origin, storage) -> None:
    async with make_cache(origin, storage) as cache:
        request = AsyncCacheRequest(origin.transport, cache)
        seen = record_events(request, "readystatechange", "load", "error")
        request.open("GET", "http://[::1/bad.js")
        await request.send()

    assert seen == ["readystatechange:DONE", "error:DONE"]
    assert isinstance(request.error, httpx.InvalidURL)
    assert origin.requests == []
