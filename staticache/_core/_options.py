from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from staticache._core._classifier import STATIC_EXTENSIONS
from staticache._core._freshness import DEFAULT_MAX_AGE


@dataclass
class CacheOptions:
    """
    Configuration options for the static resource cache.

    Attributes:
    ----------
    max_age : int
        How long, in milliseconds, a cached resource is served without triggering
        a background revalidation. Stale resources are still served immediately;
        the refresh happens after the response has been returned.

        Default: 86 400 000 (24 hours)

        Examples:
        --------
        >>> # Revalidate resources older than one hour
        >>> options = CacheOptions(max_age=60 * 60 * 1000)

    extensions : tuple[str, ...]
        Lowercase URL suffixes treated as static resources. Requests for any other
        URL bypass the cache entirely.

        Default: .js, .css, .png, .jpg, .jpeg, .gif, .svg, .woff, .woff2, .ttf

        Examples:
        --------
        >>> # Also cache web manifests
        >>> options = CacheOptions(extensions=STATIC_EXTENSIONS + (".webmanifest",))
    """

    max_age: int = DEFAULT_MAX_AGE
    extensions: Tuple[str, ...] = STATIC_EXTENSIONS
