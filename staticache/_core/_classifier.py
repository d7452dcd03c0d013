from __future__ import annotations

from typing import Any, Optional, Tuple

STATIC_EXTENSIONS: Tuple[str, ...] = (
    ".js",
    ".css",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".woff",
    ".woff2",
    ".ttf",
)

CONTENT_TYPES: Tuple[Tuple[str, str], ...] = (
    (".js", "application/javascript"),
    (".css", "text/css"),
    (".png", "image/png"),
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".gif", "image/gif"),
    (".svg", "image/svg+xml"),
)
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def is_cache_eligible(url: Any, extensions: Tuple[str, ...] = STATIC_EXTENSIONS) -> bool:
    """
    Check whether a URL points to a static resource that may be cached.

    The check is a plain suffix match on the lowercased URL, so query strings and
    fragments make a URL ineligible. It never raises: anything that cannot be
    inspected is reported as not cacheable.

    Examples:
        >>> is_cache_eligible("https://example.com/app.JS")
        True
        >>> is_cache_eligible("https://example.com/api/data")
        False
        >>> is_cache_eligible(None)
        False
    """
    try:
        if not url or not isinstance(url, str):
            return False
        lowered = url.lower()
        return any(lowered.endswith(extension) for extension in extensions)
    except Exception:
        return False


def is_cache_eligible_method(method: Optional[str]) -> bool:
    return method is None or method.upper() == "GET"


def content_type_for(url: str) -> str:
    lowered = url.lower()
    for extension, content_type in CONTENT_TYPES:
        if lowered.endswith(extension):
            return content_type
    return DEFAULT_CONTENT_TYPE


# Marks responses synthesized from a cache entry.
CACHE_MARKER_HEADER = "X-Static-Cache"
