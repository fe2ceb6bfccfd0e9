"""Network contract: request options, responses and the NetworkAdapter protocol."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from jota_adapters.events import Subscription


class ResponseType(str, Enum):
    """How a response body is decoded."""

    JSON = "json"
    TEXT = "text"
    BYTES = "bytes"


@dataclass(slots=True)
class RequestOptions:
    """Per-request options.

    Attributes:
        headers: Extra headers merged over the adapter defaults.
        timeout_ms: Request timeout; None uses the adapter default.
        abort: Event that aborts the request when set.
        response_type: Body decoding; defaults to JSON.
        use_cache: Serve GETs from and store them into the response cache.
    """

    headers: dict[str, str] = field(default_factory=dict)
    timeout_ms: float | None = None
    abort: asyncio.Event | None = None
    response_type: ResponseType = ResponseType.JSON
    use_cache: bool = True


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """A received HTTP response.

    Attributes:
        data: Decoded body.
        status: HTTP status code.
        headers: Response headers with lower-cased names.
        ok: True for 2xx statuses.
    """

    data: Any
    status: int
    headers: dict[str, str]
    ok: bool


@dataclass(frozen=True, slots=True)
class DownloadProgress:
    """Progress of a streamed download.

    ``total`` and ``percent`` are None when the server sent no length.
    """

    loaded: int
    total: int | None
    percent: float | None


ProgressCallback = Callable[[DownloadProgress], None]
ConnectionCallback = Callable[[bool], None]


@runtime_checkable
class NetworkAdapter(Protocol):
    """Protocol for HTTP clients with a TTL response cache.

    Non-2xx responses are returned with ``ok=False``; transport failures
    raise NetworkError.
    """

    async def get(self, url: str, options: RequestOptions | None = None) -> HttpResponse: ...

    async def post(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse: ...

    async def put(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse: ...

    async def patch(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse: ...

    async def delete(self, url: str, options: RequestOptions | None = None) -> HttpResponse: ...

    async def download_file(
        self, url: str, on_progress: ProgressCallback | None = None
    ) -> bytes:
        """Download a body as bytes, reporting progress while streaming."""
        ...

    async def download_json(self, url: str) -> Any:
        """Download and decode a JSON document."""
        ...

    def get_cached(self, url: str, max_age_ms: float | None = None) -> Any:
        """Return cached data for url if fresh, else None."""
        ...

    def set_cached(self, url: str, data: Any, ttl_ms: float | None = None) -> None:
        """Cache data for url."""
        ...

    def invalidate_cache(self, url: str) -> None: ...

    def clear_cache(self) -> None: ...

    def is_online(self) -> bool: ...

    def on_connection_change(self, callback: ConnectionCallback) -> Subscription:
        """Subscribe to online/offline flips. Call the result to unsubscribe."""
        ...

    async def close(self) -> None: ...
