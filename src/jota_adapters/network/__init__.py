"""Network adapters: HTTP client contract, TTL response cache and retry."""

from jota_adapters.network.base import (
    DownloadProgress,
    HttpResponse,
    NetworkAdapter,
    RequestOptions,
    ResponseType,
)
from jota_adapters.network.cache import CacheEntry, TTLCache
from jota_adapters.network.http import HttpNetworkAdapter
from jota_adapters.network.mock import MockNetworkAdapter, MockRequest
from jota_adapters.network.retry import RetryConfig, RetryPolicy, is_retryable_status

__all__ = [
    "CacheEntry",
    "DownloadProgress",
    "HttpNetworkAdapter",
    "HttpResponse",
    "MockNetworkAdapter",
    "MockRequest",
    "NetworkAdapter",
    "RequestOptions",
    "ResponseType",
    "RetryConfig",
    "RetryPolicy",
    "TTLCache",
    "is_retryable_status",
]
