"""Composite storage routing flat keys and structured items to different backends."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Self

from jota_adapters.events import Subscription
from jota_adapters.storage.base import StorageAdapter, StorageChangeCallback


class HybridStorage(StorageAdapter):
    """Route key-value operations to ``small`` and structured ones to ``large``.

    Typical wiring puts a fast synchronous-backed store in front of a
    transactional document store. ``clear`` and ``close`` reach both
    children; change subscriptions observe both.

    Args:
        small: Backend for get/set/delete/keys and batches.
        large: Backend for collections.
    """

    def __init__(self, small: StorageAdapter, large: StorageAdapter) -> None:
        self._small = small
        self._large = large

    @property
    def small(self) -> StorageAdapter:
        """Backend serving key-value operations."""
        return self._small

    @property
    def large(self) -> StorageAdapter:
        """Backend serving structured operations."""
        return self._large

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def get(self, key: str) -> Any:
        return await self._small.get(key)

    async def set(self, key: str, value: Any) -> None:
        await self._small.set(key, value)

    async def delete(self, key: str) -> None:
        await self._small.delete(key)

    async def clear(self) -> None:
        await self._small.clear()
        await self._large.clear()

    async def keys(self) -> list[str]:
        return await self._small.keys()

    async def get_structured(self, collection: str, id: str) -> Any:
        return await self._large.get_structured(collection, id)

    async def set_structured(self, collection: str, id: str, value: Any) -> None:
        await self._large.set_structured(collection, id, value)

    async def delete_structured(self, collection: str, id: str | None = None) -> None:
        await self._large.delete_structured(collection, id)

    async def list_structured(self, collection: str) -> list[str]:
        return await self._large.list_structured(collection)

    async def get_batch(self, keys: list[str]) -> dict[str, Any]:
        return await self._small.get_batch(keys)

    async def set_batch(self, data: Mapping[str, Any]) -> None:
        await self._small.set_batch(data)

    def on_changed(self, callback: StorageChangeCallback) -> Subscription:
        return Subscription(self._small.on_changed(callback), self._large.on_changed(callback))

    async def close(self) -> None:
        try:
            await self._small.close()
        finally:
            await self._large.close()
