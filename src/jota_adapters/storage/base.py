"""Storage contract shared by every backend.

This module defines the StorageAdapter protocol that all storage backends
must follow, together with the change event and key-namespacing helpers the
backends share.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from jota_adapters.events import Subscription


@dataclass(frozen=True, slots=True)
class StorageChangeEvent:
    """A single key-value mutation.

    Attributes:
        key: Logical key, without the instance prefix.
        old_value: Value before the mutation, None if the key was absent.
        new_value: Value after the mutation, None after a delete.
    """

    key: str
    old_value: Any
    new_value: Any


StorageChangeCallback = Callable[[StorageChangeEvent], None]


@dataclass(frozen=True, slots=True)
class KeyNamespace:
    """Bijective mapping between logical keys and prefixed physical keys.

    The namespace of prefix ``P`` is every physical key starting with
    ``P.``; an empty prefix owns the whole backend.
    """

    prefix: str = ""

    SEPARATOR: ClassVar[str] = "."

    def qualify(self, key: str) -> str:
        """Return the physical key for a logical key."""
        return f"{self.prefix}{self.SEPARATOR}{key}" if self.prefix else key

    def owns(self, physical_key: str) -> bool:
        """Whether a physical key belongs to this namespace."""
        if not self.prefix:
            return True
        return physical_key.startswith(self.prefix + self.SEPARATOR)

    def strip(self, physical_key: str) -> str:
        """Return the logical key for a physical key owned by this namespace."""
        if not self.prefix:
            return physical_key
        return physical_key[len(self.prefix) + len(self.SEPARATOR) :]


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol for interchangeable storage backends.

    Every operation is a coroutine. Missing keys read as None rather than
    raising; failures raise StorageError with a StorageErrorCode.

    Example:
        >>> from jota_adapters.storage import MemoryStorage, StorageAdapter
        >>> isinstance(MemoryStorage(), StorageAdapter)
        True
    """

    async def get(self, key: str) -> Any:
        """Return the value stored under key, or None."""
        ...

    async def set(self, key: str, value: Any) -> None:
        """Store a value under key and notify change listeners."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key and notify change listeners."""
        ...

    async def clear(self) -> None:
        """Remove every key and collection in this instance's namespace."""
        ...

    async def keys(self) -> list[str]:
        """Return the logical keys in this instance's namespace."""
        ...

    async def get_structured(self, collection: str, id: str) -> Any:
        """Return the item (collection, id), or None."""
        ...

    async def set_structured(self, collection: str, id: str, value: Any) -> None:
        """Create or overwrite the item (collection, id)."""
        ...

    async def delete_structured(self, collection: str, id: str | None = None) -> None:
        """Delete one item, or the whole collection when id is None."""
        ...

    async def list_structured(self, collection: str) -> list[str]:
        """Return the ids stored in a collection, in no particular order."""
        ...

    async def get_batch(self, keys: list[str]) -> dict[str, Any]:
        """Return a mapping of every requested key to its value or None."""
        ...

    async def set_batch(self, data: Mapping[str, Any]) -> None:
        """Store several values. Not atomic across keys."""
        ...

    def on_changed(self, callback: StorageChangeCallback) -> Subscription:
        """Subscribe to key-value mutations. Call the result to unsubscribe."""
        ...

    async def close(self) -> None:
        """Release any native resources held by the backend."""
        ...
