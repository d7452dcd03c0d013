from __future__ import annotations

import typing as tp

import anysqlite
import httpx
import pytest

from staticache import AsyncBaseStorage, AsyncSqliteStorage, Entry, StoreError


class Origin:
    """
    A fake origin server.

    Answers requests with queued responses, in order, and records every request it
    receives. When the queue is empty the connection fails.
    """

    def __init__(self) -> None:
        self.requests: tp.List[httpx.Request] = []
        self.responses: tp.List[httpx.Response] = []
        self.transport = httpx.MockTransport(self.handler)

    def queue(self, *responses: httpx.Response) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise httpx.ConnectError("No more mocked responses available", request=request)
        return self.responses.pop(0)


class FailingStorage(AsyncBaseStorage):
    """
    A storage whose operations can be made to fail on demand.
    """

    def __init__(self) -> None:
        self.entries: tp.Dict[str, Entry] = {}
        self.fail_open = False
        self.fail_get = False
        self.fail_put = False

    async def open(self) -> None:
        if self.fail_open:
            raise StoreError("Could not open the cache database: unable to open database file")

    async def get(self, url: str) -> tp.Optional[Entry]:
        if self.fail_get:
            raise StoreError("Could not read from the cache database: disk I/O error")
        return self.entries.get(url)

    async def put(self, entry: Entry) -> None:
        if self.fail_put:
            raise StoreError("Could not write to the cache database: disk I/O error")
        self.entries[entry.url] = entry

    async def clear(self) -> None:
        self.entries.clear()

    async def count(self) -> int:
        return len(self.entries)

    async def total_bytes(self) -> int:
        return sum(len(entry.payload) for entry in self.entries.values())


@pytest.fixture()
def origin() -> Origin:
    return Origin()


@pytest.fixture()
async def storage() -> tp.AsyncIterator[AsyncSqliteStorage]:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    yield storage
    await storage.close()


@pytest.fixture()
def failing_storage() -> FailingStorage:
    return FailingStorage()
