"""In-process network adapter answering from registered routes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Self

from jota_adapters.errors import NetworkError, NetworkErrorCode
from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.network.base import (
    ConnectionCallback,
    DownloadProgress,
    HttpResponse,
    NetworkAdapter,
    ProgressCallback,
    RequestOptions,
)
from jota_adapters.network.cache import TTLCache

logger = logging.getLogger(__name__)

ANY_METHOD = "*"


@dataclass(frozen=True, slots=True)
class MockRequest:
    """A request received by MockNetworkAdapter."""

    method: str
    url: str
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


type _Route = HttpResponse | NetworkError


class MockNetworkAdapter(NetworkAdapter):
    """Network adapter for tests and offline development.

    Unregistered URLs answer 404 with ``ok=False``. Every request is
    recorded in :attr:`requests`.

    Example:
        ```python
        network = MockNetworkAdapter()
        network.mock("GET", "/books", [{"id": "gen"}])
        response = await network.get("/books")
        assert response.data == [{"id": "gen"}]
        ```
    """

    def __init__(self, cache_enabled: bool = True, cache_max_age_ms: float | None = None) -> None:
        self._routes: dict[tuple[str, str], _Route] = {}
        self._cache_enabled = cache_enabled
        self._cache = TTLCache(default_ttl_ms=cache_max_age_ms)
        self._online = True
        self._connection_listeners: ListenerRegistry[bool] = ListenerRegistry(
            "mock_network_connection"
        )
        self.requests: list[MockRequest] = []

    @property
    def cache(self) -> TTLCache:
        return self._cache

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def mock(
        self,
        method: str,
        url: str,
        data: Any = None,
        status: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Register the response for method and url. Method ``*`` matches any."""
        self._routes[(method.upper(), url)] = HttpResponse(
            data=data, status=status, headers=dict(headers or {}), ok=200 <= status < 300
        )

    def mock_error(self, method: str, url: str, error: NetworkError) -> None:
        """Register an error raised for method and url."""
        self._routes[(method.upper(), url)] = error

    def reset(self) -> None:
        """Drop routes, recorded requests and cached responses."""
        self._routes.clear()
        self.requests.clear()
        self._cache.clear()

    def _resolve(self, method: str, url: str) -> HttpResponse:
        if not self._online:
            raise NetworkError(f"{method} {url} failed while offline", NetworkErrorCode.OFFLINE)

        route = self._routes.get((method, url)) or self._routes.get((ANY_METHOD, url))
        if route is None:
            logger.debug("No mock route for %s %s", method, url)
            return HttpResponse(data=None, status=404, headers={}, ok=False)
        if isinstance(route, NetworkError):
            raise route
        return route

    async def _request(
        self, method: str, url: str, data: Any, options: RequestOptions | None
    ) -> HttpResponse:
        options = options or RequestOptions()
        self.requests.append(MockRequest(method, url, data, dict(options.headers)))

        if options.abort is not None and options.abort.is_set():
            raise NetworkError(f"{method} {url} aborted", NetworkErrorCode.ABORTED)

        cacheable = method == "GET" and self._cache_enabled and options.use_cache
        if cacheable:
            cached = self._cache.get(url)
            if cached is not None:
                return HttpResponse(data=cached, status=200, headers={}, ok=True)

        response = self._resolve(method, url)
        if cacheable and response.ok:
            self._cache.set(url, response.data)
        return response

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

    async def download_file(self, url: str, on_progress: ProgressCallback | None = None) -> bytes:
        self.requests.append(MockRequest("GET", url))
        response = self._resolve("GET", url)
        if response.status == 404:
            raise NetworkError(f"{url} not found", NetworkErrorCode.NOT_FOUND, status=404)
        if not response.ok:
            raise NetworkError(
                f"Download of {url} failed with {response.status}",
                NetworkErrorCode.SERVER_ERROR,
                status=response.status,
            )

        data = response.data
        if isinstance(data, str):
            body = data.encode("utf-8")
        elif isinstance(data, bytes):
            body = data
        else:
            body = json.dumps(data).encode("utf-8")

        if on_progress is not None:
            on_progress(DownloadProgress(len(body), len(body), 100.0))
        return body

    async def download_json(self, url: str) -> Any:
        raw = await self.download_file(url)
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise NetworkError(f"Invalid JSON from {url}", NetworkErrorCode.PARSE_ERROR) from exc

    def get_cached(self, url: str, max_age_ms: float | None = None) -> Any:
        return self._cache.get(url, max_age_ms)

    def set_cached(self, url: str, data: Any, ttl_ms: float | None = None) -> None:
        self._cache.set(url, data, ttl_ms)

    def invalidate_cache(self, url: str) -> None:
        self._cache.invalidate(url)

    def clear_cache(self) -> None:
        self._cache.clear()

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Simulate a connectivity change."""
        if online == self._online:
            return
        self._online = online
        self._connection_listeners.emit(online)

    def on_connection_change(self, callback: ConnectionCallback) -> Subscription:
        return self._connection_listeners.subscribe(callback)

    async def close(self) -> None:
        self._connection_listeners.clear()
