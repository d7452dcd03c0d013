#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "staticache",
# ]
#
# [tool.uv.sources]
# staticache = { path = "../", editable = true }
# ///

import asyncio
from typing import cast

import anysqlite

from staticache import AsyncSqliteStorage, ResponseMetadata
from staticache.httpx import AsyncCacheClient


async def fetch_and_print(client, url: str):
    print(f"\n➡ Sending request to {url}...")
    response = await client.get(url)
    meta = cast(ResponseMetadata, response.extensions)

    print(f"🚀 Was Stored: {meta['staticache_stored']}")
    print(f"🔄 From Cache: {meta['staticache_from_cache']}")
    print(f"⏰ Stale: {meta['staticache_stale']}")


async def main():
    url = "https://cdn.jsdelivr.net/npm/htmx.org/dist/htmx.min.js"
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
    async with AsyncCacheClient(storage=storage) as client:
        await fetch_and_print(client, url)
        await fetch_and_print(client, url)


if __name__ == "__main__":
    asyncio.run(main())
