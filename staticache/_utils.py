from __future__ import annotations

import time
import typing as tp
from pathlib import Path

import httpx


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def resolve_url(resource: tp.Any) -> tp.Optional[str]:
    """
    Turn a URL-like value into the string used as a cache key.

    Accepts a plain string, an ``httpx.URL`` or an ``httpx.Request``. Anything else
    cannot be intercepted and resolves to None.
    """
    if isinstance(resource, str):
        return resource
    if isinstance(resource, httpx.URL):
        return str(resource)
    if isinstance(resource, httpx.Request):
        return str(resource.url)
    return None


def ensure_cache_dict(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/staticache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by staticache\n*")
    return _base_path
