"""HTTP network adapter using httpx.AsyncClient.

Features:
- Lazily created, shared httpx.AsyncClient
- Per-request timeout and caller-supplied abort event
- Retry with exponential backoff for transient failures and 5xx/429
- TTL response cache for GET requests
- Streamed downloads with progress reporting
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any, Self
from urllib.parse import urlsplit

import httpx

from jota_adapters.errors import NetworkError, NetworkErrorCode
from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.network.base import (
    ConnectionCallback,
    DownloadProgress,
    HttpResponse,
    NetworkAdapter,
    ProgressCallback,
    RequestOptions,
    ResponseType,
)
from jota_adapters.network.cache import TTLCache
from jota_adapters.network.retry import RetryConfig, RetryPolicy, is_retryable_status

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000.0


class HttpNetworkAdapter(NetworkAdapter):
    """Network adapter backed by httpx.

    Non-2xx responses are returned with ``ok=False``. Transport failures
    raise NetworkError:

    - TIMEOUT when the request outlives its timeout
    - ABORTED when the abort event is set
    - OFFLINE when the adapter is offline and the request fails
    - NETWORK_ERROR for other transport failures
    - PARSE_ERROR when a 2xx body cannot be decoded

    Online state is passive: it starts from JOTA_OFFLINE, can be set with
    :meth:`set_online`, and flips back online on any received response.

    Args:
        base_url: Prefix for relative request URLs.
        timeout_ms: Default timeout. Defaults to JOTA_HTTP_TIMEOUT_MS or 30s.
        headers: Headers sent with every request.
        cache_enabled: Serve GETs from the TTL cache.
        cache_max_age_ms: Default TTL of cached responses.
        retry: Retry configuration. None disables retries.
        http2: Enable HTTP/2 on the client.
        transport: Custom httpx transport, e.g. httpx.MockTransport in tests.

    Example:
        ```python
        async with HttpNetworkAdapter(base_url="https://api.example.com") as network:
            response = await network.get("/books")
            if response.ok:
                print(response.data)
        ```
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_ms: float | None = None,
        headers: dict[str, str] | None = None,
        cache_enabled: bool = True,
        cache_max_age_ms: float | None = None,
        retry: RetryConfig | None = None,
        http2: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url
        if timeout_ms is None:
            timeout_ms = float(os.getenv("JOTA_HTTP_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS)))
        self._timeout_ms = timeout_ms
        self._headers = dict(headers or {})
        self._cache_enabled = cache_enabled
        self._cache = TTLCache(default_ttl_ms=cache_max_age_ms)
        self._retry = RetryPolicy(retry or RetryConfig(max_attempts=1))
        self._http2 = http2
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._online = os.getenv("JOTA_OFFLINE") is None
        self._connection_listeners: ListenerRegistry[bool] = ListenerRegistry(
            "network_connection"
        )

    @property
    def cache(self) -> TTLCache:
        """The response cache."""
        return self._cache

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Timeouts are enforced per request with asyncio.timeout.
            self._client = httpx.AsyncClient(
                timeout=None, http2=self._http2, transport=self._transport
            )
        return self._client

    def build_url(self, url: str) -> str:
        """Resolve url against base_url unless it is already absolute."""
        if urlsplit(url).scheme or not self._base_url:
            return url
        return f"{self._base_url.rstrip('/')}/{url.lstrip('/')}"

    async def get(self, url: str, options: RequestOptions | None = None) -> HttpResponse:
        return await self._request("GET", url, None, options)

    async def post(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse:
        return await self._request("POST", url, data, options)

    async def put(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse:
        return await self._request("PUT", url, data, options)

    async def patch(
        self, url: str, data: Any = None, options: RequestOptions | None = None
    ) -> HttpResponse:
        return await self._request("PATCH", url, data, options)

    async def delete(self, url: str, options: RequestOptions | None = None) -> HttpResponse:
        return await self._request("DELETE", url, None, options)

    async def _request(
        self, method: str, url: str, data: Any, options: RequestOptions | None
    ) -> HttpResponse:
        options = options or RequestOptions()
        full_url = self.build_url(url)
        cacheable = method == "GET" and self._cache_enabled and options.use_cache

        if cacheable:
            cached = self._cache.get(full_url)
            if cached is not None:
                return HttpResponse(data=cached, status=200, headers={}, ok=True)

        response = await self._retry.execute(
            lambda: self._send(method, full_url, data, options),
            should_retry=lambda r: is_retryable_status(r.status),
        )

        if cacheable and response.ok:
            self._cache.set(full_url, response.data)
        return response

    async def _send(
        self, method: str, url: str, data: Any, options: RequestOptions
    ) -> HttpResponse:
        """Perform one HTTP exchange under the request timeout and abort event."""
        if options.abort is not None and options.abort.is_set():
            raise NetworkError(f"{method} {url} aborted", NetworkErrorCode.ABORTED)

        headers = {**self._headers, **options.headers}
        content: dict[str, Any] = {}
        if isinstance(data, bytes | str):
            content["content"] = data
        elif data is not None:
            content["json"] = data

        timeout_ms = self._timeout_ms if options.timeout_ms is None else options.timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000.0):
                response = await _race_abort(
                    self._get_client().request(method, url, headers=headers, **content),
                    options.abort,
                )
        except TimeoutError as exc:
            raise NetworkError(
                f"{method} {url} timed out after {timeout_ms:.0f}ms", NetworkErrorCode.TIMEOUT
            ) from exc
        except httpx.TransportError as exc:
            raise self._transport_error(method, url, exc) from exc

        self._set_online_state(True)
        return _to_response(response, options.response_type)

    def _transport_error(self, method: str, url: str, exc: httpx.TransportError) -> NetworkError:
        if not self._online:
            return NetworkError(f"{method} {url} failed while offline", NetworkErrorCode.OFFLINE)
        return NetworkError(f"{method} {url} failed: {exc}", NetworkErrorCode.NETWORK_ERROR)

    async def download_file(self, url: str, on_progress: ProgressCallback | None = None) -> bytes:
        """Download url as bytes, streaming and reporting progress.

        Raises:
            NetworkError: NOT_FOUND on 404, SERVER_ERROR on any other
                non-2xx status, TIMEOUT, OFFLINE or NETWORK_ERROR on
                transport failures.
        """
        full_url = self.build_url(url)
        try:
            async with asyncio.timeout(self._timeout_ms / 1000.0):
                async with self._get_client().stream(
                    "GET", full_url, headers=self._headers
                ) as response:
                    if response.status_code == 404:
                        raise NetworkError(
                            f"{full_url} not found", NetworkErrorCode.NOT_FOUND, status=404
                        )
                    if not response.is_success:
                        raise NetworkError(
                            f"Download of {full_url} failed with {response.status_code}",
                            NetworkErrorCode.SERVER_ERROR,
                            status=response.status_code,
                        )

                    length = response.headers.get("content-length", "")
                    total = int(length) if length.isdigit() else None
                    body = bytearray()
                    async for chunk in response.aiter_bytes():
                        body.extend(chunk)
                        if on_progress is not None:
                            loaded = len(body)
                            percent = min(100.0, loaded / total * 100) if total else None
                            on_progress(DownloadProgress(loaded, total, percent))
        except TimeoutError as exc:
            raise NetworkError(
                f"Download of {full_url} timed out", NetworkErrorCode.TIMEOUT
            ) from exc
        except httpx.TransportError as exc:
            raise self._transport_error("GET", full_url, exc) from exc

        self._set_online_state(True)
        return bytes(body)

    async def download_json(self, url: str) -> Any:
        """Download and decode a JSON document.

        Raises:
            NetworkError: PARSE_ERROR if the body is not valid JSON, plus
                everything :meth:`download_file` raises.
        """
        raw = await self.download_file(url)
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON from {url}", NetworkErrorCode.PARSE_ERROR
            ) from exc

    def get_cached(self, url: str, max_age_ms: float | None = None) -> Any:
        return self._cache.get(self.build_url(url), max_age_ms)

    def set_cached(self, url: str, data: Any, ttl_ms: float | None = None) -> None:
        self._cache.set(self.build_url(url), data, ttl_ms)

    def invalidate_cache(self, url: str) -> None:
        self._cache.invalidate(self.build_url(url))

    def clear_cache(self) -> None:
        self._cache.clear()

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Record a connectivity change observed by the host application."""
        self._set_online_state(online)

    def _set_online_state(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(
            json.dumps(
                {
                    "event": "connection_change",
                    "online": online,
                    "timestamp": datetime.now(UTC).isoformat(),
                }
            )
        )
        self._connection_listeners.emit(online)

    def on_connection_change(self, callback: ConnectionCallback) -> Subscription:
        return self._connection_listeners.subscribe(callback)

    async def close(self) -> None:
        """Close the HTTP client. A later request creates a new one."""
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()


async def _race_abort[T](request: Awaitable[T], abort: asyncio.Event | None) -> T:
    """Await request, cancelling it if abort is set first."""
    if abort is None:
        return await request

    request_task = asyncio.ensure_future(request)
    abort_task = asyncio.ensure_future(abort.wait())
    try:
        done, _ = await asyncio.wait(
            {request_task, abort_task}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        for task in (request_task, abort_task):
            if not task.done():
                task.cancel()

    if request_task in done:
        return request_task.result()
    raise NetworkError("Request aborted", NetworkErrorCode.ABORTED)


def _to_response(response: httpx.Response, response_type: ResponseType) -> HttpResponse:
    try:
        data = _decode_body(response, response_type)
    except ValueError as exc:
        if response.is_success:
            raise NetworkError(
                f"Failed to parse response from {response.request.url}",
                NetworkErrorCode.PARSE_ERROR,
                status=response.status_code,
                response=response.text,
            ) from exc
        data = response.text

    return HttpResponse(
        data=data,
        status=response.status_code,
        headers={k.lower(): v for k, v in response.headers.items()},
        ok=response.is_success,
    )


def _decode_body(response: httpx.Response, response_type: ResponseType) -> Any:
    match response_type:
        case ResponseType.BYTES:
            return response.content
        case ResponseType.TEXT:
            return response.text
        case ResponseType.JSON:
            if not response.content:
                return None
            return response.json()
