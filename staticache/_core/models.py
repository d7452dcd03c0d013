from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TypedDict, Union

from staticache._core._headers import Headers


@dataclass(frozen=True)
class Payload:
    """
    A cached body in both of its views.

    ``body`` holds the exact bytes received from the origin and ``text`` holds their
    UTF-8 decoding. Both are derived once from the same bytes, so always build a
    payload with :meth:`Payload.from_bytes`.
    """

    body: bytes
    text: str

    @classmethod
    def from_bytes(cls, body: Union[bytes, bytearray, memoryview]) -> "Payload":
        content = bytes(body)
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            # Binary resources (images, fonts) have no text view.
            text = ""
        return cls(body=content, text=text)

    def __len__(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class Entry:
    url: str
    payload: Payload
    etag: Optional[str] = None
    timestamp: int = 0
    """Epoch milliseconds when the entry was last confirmed fresh."""


@dataclass(frozen=True)
class CacheStatus:
    count: int
    total_bytes: int


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "staticache_" to avoid collisions with httpx extensions
    staticache_from_cache: bool
    """Indicates whether the response was served from cache."""

    staticache_stored: bool
    """Indicates whether the response was stored in cache."""

    staticache_stale: bool
    """Indicates whether the cached copy was older than the max age when served."""

    staticache_stored_at: int
    """Epoch milliseconds when the served entry was last confirmed fresh."""
