from __future__ import annotations

import abc
import typing as tp

from ..models import Entry


class AsyncBaseStorage(abc.ABC):
    """
    Persistent store of cache entries, keyed by the exact request URL.

    Implementations raise ``StoreError`` when the backing storage cannot be read or
    written; a failed read must never be reported as a missing entry.
    """

    @abc.abstractmethod
    async def get(self, url: str) -> tp.Optional[Entry]:
        """
        Return the entry stored for ``url``, or None if there is none.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def put(self, entry: Entry) -> None:
        """
        Insert the entry, replacing any entry already stored for the same URL.

        Once this returns, ``get(entry.url)`` returns the new entry.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def clear(self) -> None:
        """
        Remove every entry.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def count(self) -> int:
        raise NotImplementedError()

    @abc.abstractmethod
    async def total_bytes(self) -> int:
        """
        Sum of the payload sizes of all entries.

        Computed on demand with a full scan; meant for diagnostics, not hot paths.
        """
        raise NotImplementedError()

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass
