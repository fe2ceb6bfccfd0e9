"""Storage backend wrapping a synchronous key-value store behind the async contract.

The underlying primitive has no collections, no batching and no change feed:

- Structured items are encoded into flat keys ``_coll_{collection}_{id}``;
  ``list_structured`` scans every key, so collection scans cost
  O(total keys) rather than O(collection size).
- Plain keys that start with either marker are stored behind ``_kv_`` so
  they never read back as collection items.
- Change events carry the true prior value because each mutation reads the
  old value synchronously, with no await between the read and the write.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Self

from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.storage.base import StorageAdapter, StorageChangeCallback, StorageChangeEvent
from jota_adapters.storage.sync_store import SyncKeyValueStore, SyncStorage

logger = logging.getLogger(__name__)

COLLECTION_MARKER = "_coll_"
PLAIN_KEY_MARKER = "_kv_"


def _escape_collection(collection: str) -> str:
    # Underscores inside the name would make "_coll_a_" a prefix of collection "a_b".
    return collection.replace("%", "%25").replace("_", "%5F")


def collection_key_prefix(collection: str) -> str:
    """Return the flat-key prefix shared by every item of a collection."""
    return f"{COLLECTION_MARKER}{_escape_collection(collection)}_"


def encode_plain_key(key: str) -> str:
    """Return the flat key a plain key is stored under."""
    if key.startswith((COLLECTION_MARKER, PLAIN_KEY_MARKER)):
        return PLAIN_KEY_MARKER + key
    return key


def decode_plain_key(stored: str) -> str | None:
    """Inverse of encode_plain_key; None for collection items."""
    if stored.startswith(PLAIN_KEY_MARKER):
        return stored[len(PLAIN_KEY_MARKER) :]
    if stored.startswith(COLLECTION_MARKER):
        return None
    return stored


class SyncBackedStorage(StorageAdapter):
    """Async storage contract over a SyncKeyValueStore.

    Args:
        store: The synchronous primitive, e.g. DbmKeyValueStore.
        prefix: Namespace prefix for every key and collection.

    Example:
        ```python
        storage = SyncBackedStorage(DbmKeyValueStore("/var/lib/app/kv"), prefix="app")
        await storage.set_structured("bookmarks", "john-3-16", {"note": "..."})
        ids = await storage.list_structured("bookmarks")
        ```
    """

    def __init__(self, store: SyncKeyValueStore, prefix: str = "") -> None:
        self._storage = SyncStorage(store, prefix)
        self._listeners: ListenerRegistry[StorageChangeEvent] = ListenerRegistry(
            "sync_backed_storage"
        )

    @property
    def prefix(self) -> str:
        """Namespace prefix of this instance."""
        return self._storage.prefix

    @property
    def sync_storage(self) -> SyncStorage:
        """The synchronous layer, for size and usage reporting."""
        return self._storage

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _notify(self, key: str, old_value: Any, new_value: Any) -> None:
        self._listeners.emit(StorageChangeEvent(key, old_value, new_value))

    async def get(self, key: str) -> Any:
        return self._storage.get(encode_plain_key(key))

    async def set(self, key: str, value: Any) -> None:
        stored = encode_plain_key(key)
        old_value = self._storage.get(stored)
        self._storage.set(stored, value)
        self._notify(key, old_value, value)

    async def delete(self, key: str) -> None:
        stored = encode_plain_key(key)
        old_value = self._storage.get(stored)
        self._storage.remove(stored)
        self._notify(key, old_value, None)

    async def clear(self) -> None:
        self._storage.clear()

    async def keys(self) -> list[str]:
        decoded = (decode_plain_key(k) for k in self._storage.keys())
        return [k for k in decoded if k is not None]

    async def get_structured(self, collection: str, id: str) -> Any:
        return self._storage.get(collection_key_prefix(collection) + id)

    async def set_structured(self, collection: str, id: str, value: Any) -> None:
        self._storage.set(collection_key_prefix(collection) + id, value)

    async def delete_structured(self, collection: str, id: str | None = None) -> None:
        prefix = collection_key_prefix(collection)
        if id is not None:
            self._storage.remove(prefix + id)
            return

        doomed = [k for k in self._storage.keys() if k.startswith(prefix)]
        for key in doomed:
            self._storage.remove(key)
        logger.debug("Deleted %d items of collection %r", len(doomed), collection)

    async def list_structured(self, collection: str) -> list[str]:
        prefix = collection_key_prefix(collection)
        return [k[len(prefix) :] for k in self._storage.keys() if k.startswith(prefix)]

    async def get_batch(self, keys: list[str]) -> dict[str, Any]:
        return {key: self._storage.get(encode_plain_key(key)) for key in keys}

    async def set_batch(self, data: Mapping[str, Any]) -> None:
        for key, value in data.items():
            await self.set(key, value)

    def on_changed(self, callback: StorageChangeCallback) -> Subscription:
        return self._listeners.subscribe(callback)

    async def close(self) -> None:
        """Close the underlying store if it holds a native handle."""
        close = getattr(self._storage.store, "close", None)
        if close is not None:
            close()
