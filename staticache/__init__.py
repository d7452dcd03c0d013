from staticache._core._headers import Headers as Headers
from staticache._core._classifier import (
    CACHE_MARKER_HEADER as CACHE_MARKER_HEADER,
    STATIC_EXTENSIONS as STATIC_EXTENSIONS,
    content_type_for as content_type_for,
    is_cache_eligible as is_cache_eligible,
    is_cache_eligible_method as is_cache_eligible_method,
)
from staticache._core._freshness import DEFAULT_MAX_AGE as DEFAULT_MAX_AGE, is_stale as is_stale
from staticache._core._options import CacheOptions as CacheOptions
from staticache._core.models import (
    CacheStatus as CacheStatus,
    Entry as Entry,
    Payload as Payload,
    Request as Request,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)
from staticache._core._storages._async_base import AsyncBaseStorage as AsyncBaseStorage
from staticache._core._storages._async_sqlite import AsyncSqliteStorage as AsyncSqliteStorage
from staticache._exceptions import (
    StaticCacheError as StaticCacheError,
    StoreError as StoreError,
    TransportError as TransportError,
)
from staticache._fetcher import AsyncTransportSender as AsyncTransportSender, RequestSender as RequestSender
from staticache._async_cache import AsyncStaticCache as AsyncStaticCache

__all__ = (
    # Classification and freshness
    "CACHE_MARKER_HEADER",
    "STATIC_EXTENSIONS",
    "DEFAULT_MAX_AGE",
    "content_type_for",
    "is_cache_eligible",
    "is_cache_eligible_method",
    "is_stale",
    # Configuration
    "CacheOptions",
    # Models
    "CacheStatus",
    "Entry",
    "Payload",
    "Request",
    "Response",
    "ResponseMetadata",
    ## Headers
    "Headers",
    # Storages
    "AsyncBaseStorage",
    "AsyncSqliteStorage",
    # Errors
    "StaticCacheError",
    "StoreError",
    "TransportError",
    # Engine
    "AsyncStaticCache",
    "AsyncTransportSender",
    "RequestSender",
)
