"""In-memory storage backend.

Dependency-free reference implementation of the storage contract. Its
behaviour, including prefix-scoped ``clear`` and ``keys``, is the semantics
every other backend reproduces.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.storage.base import (
    KeyNamespace,
    StorageAdapter,
    StorageChangeCallback,
    StorageChangeEvent,
)


@dataclass
class MemoryStore:
    """The physical maps behind one or more MemoryStorage instances.

    Attributes:
        values: Flat key-value map keyed by physical key.
        collections: Map of physical collection name to ``{id: value}``.
    """

    values: dict[str, Any] = field(default_factory=dict)
    collections: dict[str, dict[str, Any]] = field(default_factory=dict)


class MemoryStorage(StorageAdapter):
    """Storage backend holding everything in process memory.

    Several instances may share one MemoryStore to model differently
    prefixed views of the same physical backend.

    Example:
        ```python
        storage = MemoryStorage(prefix="settings")
        await storage.set("theme", "dark")
        assert await storage.get("theme") == "dark"
        ```
    """

    def __init__(self, prefix: str = "", store: MemoryStore | None = None) -> None:
        self._namespace = KeyNamespace(prefix)
        self._store = store if store is not None else MemoryStore()
        self._listeners: ListenerRegistry[StorageChangeEvent] = ListenerRegistry(
            "memory_storage"
        )

    @property
    def prefix(self) -> str:
        """Namespace prefix of this instance."""
        return self._namespace.prefix

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _notify(self, key: str, old_value: Any, new_value: Any) -> None:
        self._listeners.emit(StorageChangeEvent(key, old_value, new_value))

    async def get(self, key: str) -> Any:
        return self._store.values.get(self._namespace.qualify(key))

    async def set(self, key: str, value: Any) -> None:
        physical = self._namespace.qualify(key)
        old_value = self._store.values.get(physical)
        self._store.values[physical] = value
        self._notify(key, old_value, value)

    async def delete(self, key: str) -> None:
        old_value = self._store.values.pop(self._namespace.qualify(key), None)
        self._notify(key, old_value, None)

    async def clear(self) -> None:
        if not self._namespace.prefix:
            self._store.values.clear()
            self._store.collections.clear()
            return

        for physical in [k for k in self._store.values if self._namespace.owns(k)]:
            del self._store.values[physical]
        for name in [c for c in self._store.collections if self._namespace.owns(c)]:
            del self._store.collections[name]

    async def keys(self) -> list[str]:
        return [
            self._namespace.strip(physical)
            for physical in self._store.values
            if self._namespace.owns(physical)
        ]

    async def get_structured(self, collection: str, id: str) -> Any:
        items = self._store.collections.get(self._namespace.qualify(collection))
        if items is None:
            return None
        return items.get(id)

    async def set_structured(self, collection: str, id: str, value: Any) -> None:
        items = self._store.collections.setdefault(self._namespace.qualify(collection), {})
        items[id] = value

    async def delete_structured(self, collection: str, id: str | None = None) -> None:
        name = self._namespace.qualify(collection)
        if id is None:
            self._store.collections.pop(name, None)
            return

        items = self._store.collections.get(name)
        if items is not None:
            items.pop(id, None)

    async def list_structured(self, collection: str) -> list[str]:
        items = self._store.collections.get(self._namespace.qualify(collection))
        return list(items) if items else []

    async def get_batch(self, keys: list[str]) -> dict[str, Any]:
        return {key: await self.get(key) for key in keys}

    async def set_batch(self, data: Mapping[str, Any]) -> None:
        for key, value in data.items():
            await self.set(key, value)

    def on_changed(self, callback: StorageChangeCallback) -> Subscription:
        return self._listeners.subscribe(callback)

    async def close(self) -> None:
        """Nothing to release; kept for contract uniformity."""
        return None

    def size(self) -> int:
        """Approximate size of the stored data in bytes (JSON length)."""
        total = 0
        for key, value in self._store.values.items():
            total += len(key) + len(json.dumps(value, default=str))
        for name, items in self._store.collections.items():
            total += len(name) + len(json.dumps(items, default=str))
        return total

    def dump(self) -> dict[str, Any]:
        """Return a shallow snapshot of both physical maps for debugging."""
        return {
            "storage": dict(self._store.values),
            "collections": {name: dict(items) for name, items in self._store.collections.items()},
        }
