from __future__ import annotations

from staticache._core.models import Entry

# 24 hours in milliseconds
DEFAULT_MAX_AGE = 24 * 60 * 60 * 1000


def is_stale(entry: Entry, now: int, max_age: int = DEFAULT_MAX_AGE) -> bool:
    """
    Return True when the entry was last confirmed fresh more than ``max_age`` ago.

    Args:
        entry: The cached entry.
        now: Current time in epoch milliseconds.
        max_age: Maximum age in milliseconds.
    """
    return now - entry.timestamp > max_age
