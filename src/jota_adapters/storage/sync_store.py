"""Synchronous, string-only key-value primitives and the prefixed JSON layer over them.

A SyncKeyValueStore is the Python analogue of a browser ``localStorage``:
flat, string keyed, string valued, blocking. Two implementations are
provided: an in-process dict with an optional byte budget and a durable
file backed by the standard library ``dbm`` module.
"""

from __future__ import annotations

import dbm
import errno
import json
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from jota_adapters.errors import StorageError, StorageErrorCode
from jota_adapters.storage.base import KeyNamespace

logger = logging.getLogger(__name__)

# Nominal budget used for usage reporting, matching typical browser limits.
NOMINAL_QUOTA_BYTES = 5 * 1024 * 1024

_QUOTA_ERRNOS = frozenset(
    code for code in (errno.ENOSPC, getattr(errno, "EDQUOT", None), errno.EFBIG) if code
)
_QUOTA_MESSAGES = ("quota exceeded", "quota_exceeded", "database or disk is full", "no space left")


class QuotaExceededError(Exception):
    """Raised by a SyncKeyValueStore whose storage budget is exhausted."""

    pass


def is_quota_exceeded_error(exc: BaseException) -> bool:
    """Check whether a native error means "the store is full".

    Recognised shapes:
    - QuotaExceededError (any class with that name)
    - OSError with ENOSPC, EDQUOT or EFBIG
    - sqlite3 errors carrying SQLITE_FULL (dbm.sqlite3 and similar)
    - messages naming an exceeded quota or a full disk

    Args:
        exc: The exception raised by the underlying store.

    Returns:
        bool: True if the error indicates exhausted storage.
    """
    if type(exc).__name__ == "QuotaExceededError":
        return True

    if isinstance(exc, OSError) and exc.errno in _QUOTA_ERRNOS:
        return True

    if isinstance(exc, sqlite3.Error) and getattr(exc, "sqlite_errorcode", None) == sqlite3.SQLITE_FULL:
        return True

    message = str(exc).lower()
    return any(pattern in message for pattern in _QUOTA_MESSAGES)


@runtime_checkable
class SyncKeyValueStore(Protocol):
    """Protocol for synchronous string-only key-value stores."""

    def get_item(self, key: str) -> str | None:
        """Return the raw string for key, or None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a raw string under key."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete key if present."""
        ...

    def keys(self) -> list[str]:
        """Return every key in the store."""
        ...

    def clear(self) -> None:
        """Delete every key in the store."""
        ...


class DictKeyValueStore(SyncKeyValueStore):
    """In-process SyncKeyValueStore with an optional byte budget.

    Args:
        max_bytes: Budget for ``len(key) + len(value)`` summed over all
            entries. None disables the budget.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._max_bytes = max_bytes

    def _used_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._items.items())

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._max_bytes is not None:
            current = self._items.get(key)
            reclaimed = len(key) + len(current) if current is not None else 0
            projected = self._used_bytes() - reclaimed + len(key) + len(value)
            if projected > self._max_bytes:
                raise QuotaExceededError(
                    f"Storing {key!r} needs {projected} bytes, budget is {self._max_bytes}"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))


class DbmKeyValueStore(SyncKeyValueStore):
    """Durable SyncKeyValueStore backed by a ``dbm`` database file.

    The database is opened lazily on first access and kept open until
    :meth:`close`.

    Args:
        path: Database file path. The dbm flavour picks its own suffixes.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._db: Any = None

    @property
    def path(self) -> Path:
        """Database file path."""
        return self._path

    def _handle(self) -> Any:
        if self._db is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._db = dbm.open(str(self._path), "c")
            logger.debug("Opened dbm store at %s", self._path)
        return self._db

    def _sync(self) -> None:
        sync = getattr(self._db, "sync", None)
        if sync is not None:
            sync()

    def get_item(self, key: str) -> str | None:
        try:
            raw = self._handle()[key.encode("utf-8")]
        except KeyError:
            return None
        return bytes(raw).decode("utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._handle()[key.encode("utf-8")] = value.encode("utf-8")
        self._sync()

    def remove_item(self, key: str) -> None:
        db = self._handle()
        try:
            del db[key.encode("utf-8")]
        except KeyError:
            return
        self._sync()

    def keys(self) -> list[str]:
        return [bytes(k).decode("utf-8") for k in list(self._handle().keys())]

    def clear(self) -> None:
        db = self._handle()
        for key in list(db.keys()):
            del db[key]
        self._sync()

    def close(self) -> None:
        """Close the database file."""
        if self._db is not None:
            self._db.close()
            self._db = None
            logger.debug("Closed dbm store at %s", self._path)


class SyncStorage:
    """Prefixed, JSON-encoding synchronous storage over a SyncKeyValueStore.

    Values are stored as JSON text. Native errors are translated into
    StorageError at this boundary.

    Example:
        ```python
        storage = SyncStorage(DictKeyValueStore(), prefix="app")
        storage.set("theme", {"mode": "dark"})
        assert storage.get("theme") == {"mode": "dark"}
        ```
    """

    def __init__(self, store: SyncKeyValueStore, prefix: str = "") -> None:
        self._store = store
        self._namespace = KeyNamespace(prefix)

    @property
    def store(self) -> SyncKeyValueStore:
        """The underlying primitive."""
        return self._store

    @property
    def prefix(self) -> str:
        """Namespace prefix of this instance."""
        return self._namespace.prefix

    def get(self, key: str) -> Any:
        """Return the decoded value stored under key, or None."""
        physical = self._namespace.qualify(key)
        try:
            raw = self._store.get_item(physical)
        except Exception as exc:
            raise _translate(exc, f"read {physical!r}") from exc

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(
                f"Stored value for {physical!r} is not valid JSON", StorageErrorCode.INVALID_DATA
            ) from exc

    def set(self, key: str, value: Any) -> None:
        """Encode and store a value under key."""
        physical = self._namespace.qualify(key)
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(
                f"Value for {physical!r} is not JSON serializable", StorageErrorCode.INVALID_DATA
            ) from exc

        try:
            self._store.set_item(physical, raw)
        except Exception as exc:
            raise _translate(exc, f"write {physical!r}") from exc

    def remove(self, key: str) -> None:
        """Delete key if present."""
        physical = self._namespace.qualify(key)
        try:
            self._store.remove_item(physical)
        except Exception as exc:
            raise _translate(exc, f"remove {physical!r}") from exc

    def has(self, key: str) -> bool:
        """Whether key is present."""
        try:
            return self._store.get_item(self._namespace.qualify(key)) is not None
        except Exception as exc:
            raise _translate(exc, f"read {key!r}") from exc

    def clear(self) -> None:
        """Delete every key in this namespace, or the whole store without a prefix."""
        try:
            if not self._namespace.prefix:
                self._store.clear()
                return
            for physical in [k for k in self._store.keys() if self._namespace.owns(k)]:
                self._store.remove_item(physical)
        except Exception as exc:
            raise _translate(exc, "clear store") from exc

    def keys(self) -> list[str]:
        """Return the logical keys of this namespace."""
        try:
            physical_keys = self._store.keys()
        except Exception as exc:
            raise _translate(exc, "list keys") from exc
        return [self._namespace.strip(k) for k in physical_keys if self._namespace.owns(k)]

    def get_size(self) -> int:
        """Approximate bytes used by the whole underlying store."""
        total = 0
        try:
            for key in self._store.keys():
                total += len(key) + len(self._store.get_item(key) or "")
        except Exception as exc:
            raise _translate(exc, "measure store") from exc
        return total

    def get_usage_percent(self) -> float:
        """Usage of the nominal 5 MiB budget as a percentage, capped at 100."""
        return min(100.0, self.get_size() / NOMINAL_QUOTA_BYTES * 100)


def _translate(exc: Exception, action: str) -> StorageError:
    if is_quota_exceeded_error(exc):
        return StorageError(f"Storage quota exceeded: {action}", StorageErrorCode.QUOTA_EXCEEDED)
    if isinstance(exc, PermissionError):
        return StorageError(f"Permission denied: {action}", StorageErrorCode.PERMISSION_DENIED)
    return StorageError(f"Failed to {action}: {exc}", StorageErrorCode.UNKNOWN)
