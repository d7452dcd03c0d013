from ._async_events import (
    AsyncCacheRequest as AsyncCacheRequest,
    AsyncEventRequest as AsyncEventRequest,
    ReadyState as ReadyState,
)
from ._async_httpx import AsyncCacheClient as AsyncCacheClient, AsyncCacheTransport as AsyncCacheTransport

__all__ = (
    "AsyncCacheClient",
    "AsyncCacheTransport",
    "AsyncCacheRequest",
    "AsyncEventRequest",
    "ReadyState",
)
