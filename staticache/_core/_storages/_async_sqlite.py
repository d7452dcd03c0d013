from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import anysqlite
import msgpack

from staticache._core._storages._async_base import AsyncBaseStorage
from staticache._core._storages._packing import pack, unpack
from staticache._core.models import Entry
from staticache._exceptions import StoreError
from staticache._utils import ensure_cache_dict

logger = logging.getLogger("staticache.storages")

# Number of rows to unpack per chunk when scanning the whole table
SCAN_CHUNK_SIZE = 200


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (sqlite3.Error, msgpack.exceptions.UnpackException, ValueError, KeyError, TypeError) as exc:
        raise StoreError(f"Could not {action} the cache database: {exc}") from exc


class AsyncSqliteStorage(AsyncBaseStorage):
    def __init__(
        self,
        *,
        connection: Optional[anysqlite.Connection] = None,
        database_path: Union[str, Path] = "staticache.db",
    ) -> None:
        self.connection = connection
        self.database_path: Path = database_path if isinstance(database_path, Path) else Path(database_path)
        self._initialized = False

    async def _ensure_connection(self) -> anysqlite.Connection:
        """Ensure connection is established and database is initialized."""
        if self.connection is None:
            # Create cache directory and resolve full path on first connection
            parent = self.database_path.parent if self.database_path.parent != Path(".") else None
            full_path = ensure_cache_dict(parent) / self.database_path.name
            logger.debug(f"Opening cache database at {full_path}")
            self.connection = await anysqlite.connect(str(full_path))
        if not self._initialized:
            await self._initialize_database()
            self._initialized = True
        return self.connection

    async def _initialize_database(self) -> None:
        """Initialize the database schema."""
        assert self.connection is not None
        cursor = await self.connection.cursor()

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS resources (
                url TEXT PRIMARY KEY,
                payload BLOB NOT NULL,
                etag TEXT,
                timestamp INTEGER NOT NULL
            )
        """)

        # Lookups only ever go by url; the timestamp index is there for age-based queries
        await cursor.execute("CREATE INDEX IF NOT EXISTS idx_resources_timestamp ON resources(timestamp)")

        await self.connection.commit()

    async def open(self) -> None:
        with _store_errors("open"):
            await self._ensure_connection()

    async def get(self, url: str) -> Optional[Entry]:
        with _store_errors("read from"):
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "SELECT url, payload, etag, timestamp FROM resources WHERE url = ?",
                (url,),
            )
            row = await cursor.fetchone()

            if row is None:
                return None

            return Entry(
                url=row[0],
                payload=unpack(row[1]),
                etag=row[2],
                timestamp=row[3],
            )

    async def put(self, entry: Entry) -> None:
        with _store_errors("write to"):
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "INSERT OR REPLACE INTO resources (url, payload, etag, timestamp) VALUES (?, ?, ?, ?)",
                (entry.url, pack(entry.payload), entry.etag, entry.timestamp),
            )
            await connection.commit()

    async def clear(self) -> None:
        with _store_errors("clear"):
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("DELETE FROM resources")
            await connection.commit()

    async def count(self) -> int:
        with _store_errors("read from"):
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT COUNT(*) FROM resources")
            row = await cursor.fetchone()
            return int(row[0]) if row is not None else 0

    async def total_bytes(self) -> int:
        total = 0
        with _store_errors("read from"):
            connection = await self._ensure_connection()
            cursor = await connection.cursor()

            # Process entries in chunks to avoid loading the entire table into memory.
            offset = 0
            while True:
                await cursor.execute(
                    "SELECT payload FROM resources ORDER BY url LIMIT ? OFFSET ?",
                    (SCAN_CHUNK_SIZE, offset),
                )
                rows = await cursor.fetchall()
                if not rows:
                    break

                for row in rows:
                    total += len(unpack(row[0]))

                offset += len(rows)
        return total

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            self._initialized = False
