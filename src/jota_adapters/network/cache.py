"""In-memory TTL response cache.

Expiry is lazy: nothing runs on a timer, a stale entry is evicted by the
read that finds it.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60 * 60 * 1000.0


def _now_ms() -> float:
    return time.time() * 1000.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached response body.

    Attributes:
        data: The cached value.
        cached_at: Insertion time in epoch milliseconds.
        ttl: Time to live in milliseconds.
    """

    data: Any
    cached_at: float
    ttl: float

    def is_fresh(self, now: float, max_age_ms: float | None = None) -> bool:
        """Whether the entry is still valid at ``now``.

        ``max_age_ms`` overrides the stored TTL for this check only.
        """
        effective_ttl = self.ttl if max_age_ms is None else max_age_ms
        return now - self.cached_at <= effective_ttl

    def to_dict(self) -> dict[str, Any]:
        """Return the wire shape ``{"data", "cachedAt", "ttl"}``."""
        return {"data": self.data, "cachedAt": self.cached_at, "ttl": self.ttl}


class TTLCache:
    """Map of URL to CacheEntry with read-time expiry.

    Args:
        default_ttl_ms: TTL for entries set without one. Defaults to
            JOTA_CACHE_TTL_MS or one hour.
        clock: Millisecond clock, replaceable in tests.

    Example:
        ```python
        cache = TTLCache()
        cache.set("/books", ["gen", "exo"], ttl_ms=50)
        cache.get("/books")  # ["gen", "exo"]
        ```
    """

    def __init__(
        self,
        default_ttl_ms: float | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if default_ttl_ms is None:
            default_ttl_ms = float(os.getenv("JOTA_CACHE_TTL_MS", str(DEFAULT_TTL_MS)))
        self._default_ttl_ms = default_ttl_ms
        self._clock = clock or _now_ms
        self._entries: dict[str, CacheEntry] = {}

    @property
    def default_ttl_ms(self) -> float:
        return self._default_ttl_ms

    def get(self, key: str, max_age_ms: float | None = None) -> Any:
        """Return the cached data if fresh, else evict and return None."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache miss for %s", key)
            return None

        if not entry.is_fresh(self._clock(), max_age_ms):
            del self._entries[key]
            logger.debug("Evicted stale cache entry for %s", key)
            return None

        logger.debug("Cache hit for %s", key)
        return entry.data

    def set(self, key: str, data: Any, ttl_ms: float | None = None) -> None:
        """Store data under key with the given or default TTL."""
        ttl = self._default_ttl_ms if ttl_ms is None else ttl_ms
        self._entries[key] = CacheEntry(data=data, cached_at=self._clock(), ttl=ttl)

    def peek(self, key: str) -> CacheEntry | None:
        """Return the raw entry without checking freshness."""
        return self._entries.get(key)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
