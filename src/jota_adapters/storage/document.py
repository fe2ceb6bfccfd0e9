"""Transactional document storage backend using aiosqlite.

Two physical stores live in one SQLite database:

- ``keyvalue``: flat store keyed by the (possibly prefixed) key.
- ``collections``: compound primary key ``(collection, id)`` with a
  non-unique index ``collection`` for collection scans.

Store, index and key names are part of the on-disk contract; changing them
requires bumping SCHEMA_VERSION and adding a migration step.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import sqlite3
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self

import aiosqlite

from jota_adapters.errors import StorageError, StorageErrorCode
from jota_adapters.events import ListenerRegistry, Subscription
from jota_adapters.storage.base import (
    KeyNamespace,
    StorageAdapter,
    StorageChangeCallback,
    StorageChangeEvent,
)
from jota_adapters.storage.sync_store import is_quota_exceeded_error

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "jota-db"
SCHEMA_VERSION = 1
KV_STORE = "keyvalue"
COLLECTIONS_STORE = "collections"
COLLECTION_INDEX = "collection"


@dataclass
class DocumentStorageConfig:
    """Configuration for DocumentStorage.

    Attributes:
        db_path: Path to the SQLite database file (``":memory:"`` for a
            private in-memory database).
        prefix: Namespace prefix for every key and collection.
        max_quota: Optional size cap in bytes, enforced by SQLite.
    """

    db_path: Path | str
    prefix: str = ""
    max_quota: int | None = None


@dataclass(frozen=True, slots=True)
class StorageEstimate:
    """Storage usage estimate in bytes."""

    usage: int
    quota: int


class DocumentStorage(StorageAdapter):
    """Storage backend over a versioned, transactional SQLite document store.

    The connection is opened lazily. Concurrent first callers share a single
    in-flight open, so at most one physical connect happens. A failed open
    is forgotten and the next operation tries again.

    Every logical operation runs in its own transaction. Transactions on the
    shared connection are serialized by a lock; nothing is atomic across
    operations.

    Example:
        ```python
        async with DocumentStorage(DocumentStorageConfig("jota-db.sqlite3")) as storage:
            await storage.set_structured("posts", "1", {"title": "x"})
            await storage.list_structured("posts")
        ```
    """

    def __init__(self, config: DocumentStorageConfig) -> None:
        """Initialize the document backend.

        Args:
            config: Backend configuration.
        """
        self._config = config
        self._namespace = KeyNamespace(config.prefix)
        self._db: aiosqlite.Connection | None = None
        self._open_task: asyncio.Task[aiosqlite.Connection] | None = None
        self._lock = asyncio.Lock()
        self._listeners: ListenerRegistry[StorageChangeEvent] = ListenerRegistry(
            "document_storage"
        )

    @property
    def config(self) -> DocumentStorageConfig:
        return self._config

    @property
    def prefix(self) -> str:
        """Namespace prefix of this instance."""
        return self._namespace.prefix

    @property
    def is_open(self) -> bool:
        """Whether a connection is currently established."""
        return self._db is not None

    async def __aenter__(self) -> Self:
        """Enter async context manager and open the database.

        Returns:
            Self for context manager protocol.
        """
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager and close the database."""
        await self.close()

    async def open(self) -> aiosqlite.Connection:
        """Open the database connection if needed and return it.

        Idempotent and safe to call concurrently.

        Raises:
            StorageError: NOT_AVAILABLE or PERMISSION_DENIED if the database
                cannot be opened, UNKNOWN for anything else.
        """
        if self._db is not None:
            return self._db

        if self._open_task is None:
            self._open_task = asyncio.create_task(self._connect())
        task = self._open_task

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and self._open_task is task:
                self._open_task = None
            raise
        except Exception:
            if self._open_task is task:
                self._open_task = None
            raise

    async def _connect(self) -> aiosqlite.Connection:
        """Establish the connection, apply pragmas and migrate the schema."""
        path = Path(self._config.db_path)
        try:
            if str(path) != ":memory:":
                path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(path, isolation_level=None)
        except PermissionError as exc:
            raise StorageError(
                f"Permission denied opening {self._config.db_path}",
                StorageErrorCode.PERMISSION_DENIED,
            ) from exc
        except (sqlite3.OperationalError, OSError) as exc:
            raise StorageError(
                f"Document store at {self._config.db_path} is not available: {exc}",
                StorageErrorCode.NOT_AVAILABLE,
            ) from exc

        try:
            await db.execute("PRAGMA journal_mode = WAL")
            await db.execute("PRAGMA synchronous = NORMAL")
            await self._ensure_schema(db)
            if self._config.max_quota is not None:
                await self._apply_quota(db, self._config.max_quota)
        except Exception as exc:
            await db.close()
            raise _translate(exc, "open document store") from exc

        self._db = db
        logger.debug("Opened document store at %s", self._config.db_path)
        return db

    async def _ensure_schema(self, db: aiosqlite.Connection) -> None:
        """Create stores and index if absent. Safe on an already-migrated database."""
        cursor = await db.execute("PRAGMA user_version")
        row = await cursor.fetchone()
        version = row[0] if row else 0
        if version >= SCHEMA_VERSION:
            return

        await db.execute("BEGIN IMMEDIATE")
        try:
            await db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {KV_STORE} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            await db.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {COLLECTIONS_STORE} (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            await db.execute(
                f'CREATE INDEX IF NOT EXISTS "{COLLECTION_INDEX}" '
                f"ON {COLLECTIONS_STORE}(collection)"
            )
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            await db.execute("COMMIT")
        except Exception:
            if db.in_transaction:
                await db.execute("ROLLBACK")
            raise
        logger.debug("Migrated document store from version %d to %d", version, SCHEMA_VERSION)

    async def _apply_quota(self, db: aiosqlite.Connection, max_quota: int) -> None:
        cursor = await db.execute("PRAGMA page_size")
        row = await cursor.fetchone()
        page_size = row[0] if row else 4096
        await db.execute(f"PRAGMA max_page_count = {max(1, max_quota // page_size)}")

    async def close(self) -> None:
        """Close the connection and forget the memoized open.

        A later operation re-establishes the connection.
        """
        task = self._open_task
        if task is not None and not task.done():
            try:
                await asyncio.shield(task)
            except Exception as exc:
                logger.debug("Pending open failed before close: %s", exc)
        self._open_task = None

        db, self._db = self._db, None
        if db is not None:
            await db.close()
            logger.debug("Closed document store at %s", self._config.db_path)

    @asynccontextmanager
    async def _transaction(
        self, action: str, write: bool = False
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body inside one transaction, translating native errors."""
        db = await self.open()
        async with self._lock:
            try:
                await db.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                try:
                    yield db
                except BaseException:
                    if db.in_transaction:
                        await db.execute("ROLLBACK")
                    raise
                await db.execute("COMMIT")
            except StorageError:
                raise
            except Exception as exc:
                raise _translate(exc, action) from exc

    def _collection_name(self, collection: str) -> str:
        return self._namespace.qualify(collection)

    async def _read_value(self, db: aiosqlite.Connection, physical: str) -> Any:
        cursor = await db.execute(f"SELECT value FROM {KV_STORE} WHERE key = ?", (physical,))
        row = await cursor.fetchone()
        return _decode(row[0], physical) if row else None

    def _notify(self, key: str, old_value: Any, new_value: Any) -> None:
        self._listeners.emit(StorageChangeEvent(key, old_value, new_value))

    async def get(self, key: str) -> Any:
        physical = self._namespace.qualify(key)
        async with self._transaction(f"get {physical!r}") as db:
            return await self._read_value(db, physical)

    async def set(self, key: str, value: Any) -> None:
        physical = self._namespace.qualify(key)
        encoded = _encode(value, physical)
        async with self._transaction(f"set {physical!r}", write=True) as db:
            old_value = await self._read_value(db, physical)
            await db.execute(
                f"INSERT OR REPLACE INTO {KV_STORE} (key, value) VALUES (?, ?)",
                (physical, encoded),
            )
        self._notify(key, old_value, value)

    async def delete(self, key: str) -> None:
        physical = self._namespace.qualify(key)
        async with self._transaction(f"delete {physical!r}", write=True) as db:
            old_value = await self._read_value(db, physical)
            await db.execute(f"DELETE FROM {KV_STORE} WHERE key = ?", (physical,))
        self._notify(key, old_value, None)

    async def clear(self) -> None:
        async with self._transaction("clear storage", write=True) as db:
            if not self._namespace.prefix:
                await db.execute(f"DELETE FROM {KV_STORE}")
                await db.execute(f"DELETE FROM {COLLECTIONS_STORE}")
                return

            scope = self._namespace.prefix + KeyNamespace.SEPARATOR
            await db.execute(
                f"DELETE FROM {KV_STORE} WHERE substr(key, 1, ?) = ?", (len(scope), scope)
            )
            await db.execute(
                f"DELETE FROM {COLLECTIONS_STORE} WHERE substr(collection, 1, ?) = ?",
                (len(scope), scope),
            )

    async def keys(self) -> list[str]:
        async with self._transaction("list keys") as db:
            cursor = await db.execute(f"SELECT key FROM {KV_STORE}")
            rows = await cursor.fetchall()
        return [
            self._namespace.strip(row[0]) for row in rows if self._namespace.owns(row[0])
        ]

    async def get_structured(self, collection: str, id: str) -> Any:
        name = self._collection_name(collection)
        async with self._transaction(f"get {name!r}/{id!r}") as db:
            cursor = await db.execute(
                f"SELECT value FROM {COLLECTIONS_STORE} WHERE collection = ? AND id = ?",
                (name, id),
            )
            row = await cursor.fetchone()
        return _decode(row[0], f"{name}/{id}") if row else None

    async def set_structured(self, collection: str, id: str, value: Any) -> None:
        name = self._collection_name(collection)
        encoded = _encode(value, f"{name}/{id}")
        async with self._transaction(f"set {name!r}/{id!r}", write=True) as db:
            await db.execute(
                f"INSERT OR REPLACE INTO {COLLECTIONS_STORE} (collection, id, value) "
                "VALUES (?, ?, ?)",
                (name, id, encoded),
            )

    async def delete_structured(self, collection: str, id: str | None = None) -> None:
        name = self._collection_name(collection)
        async with self._transaction(f"delete from {name!r}", write=True) as db:
            if id is not None:
                await db.execute(
                    f"DELETE FROM {COLLECTIONS_STORE} WHERE collection = ? AND id = ?",
                    (name, id),
                )
            else:
                await db.execute(
                    f"DELETE FROM {COLLECTIONS_STORE} WHERE collection = ?", (name,)
                )

    async def list_structured(self, collection: str) -> list[str]:
        name = self._collection_name(collection)
        async with self._transaction(f"list {name!r}") as db:
            cursor = await db.execute(
                f"SELECT id FROM {COLLECTIONS_STORE} WHERE collection = ?",
                (name,),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def get_batch(self, keys: list[str]) -> dict[str, Any]:
        results: dict[str, Any] = {}
        async with self._transaction("get batch") as db:
            for key in keys:
                results[key] = await self._read_value(db, self._namespace.qualify(key))
        return results

    async def set_batch(self, data: Mapping[str, Any]) -> None:
        encoded = {key: _encode(value, key) for key, value in data.items()}
        changes: list[StorageChangeEvent] = []
        async with self._transaction("set batch", write=True) as db:
            for key, raw in encoded.items():
                physical = self._namespace.qualify(key)
                old_value = await self._read_value(db, physical)
                await db.execute(
                    f"INSERT OR REPLACE INTO {KV_STORE} (key, value) VALUES (?, ?)",
                    (physical, raw),
                )
                changes.append(StorageChangeEvent(key, old_value, data[key]))
        for change in changes:
            self._listeners.emit(change)

    def on_changed(self, callback: StorageChangeCallback) -> Subscription:
        return self._listeners.subscribe(callback)

    async def get_storage_estimate(self) -> StorageEstimate:
        """Return bytes used by the database and the bytes it may grow to."""
        async with self._transaction("estimate storage") as db:
            page_size = await _pragma(db, "page_size")
            page_count = await _pragma(db, "page_count")
        usage = page_size * page_count

        if self._config.max_quota is not None:
            return StorageEstimate(usage=usage, quota=self._config.max_quota)

        parent = Path(self._config.db_path).resolve().parent
        return StorageEstimate(usage=usage, quota=usage + shutil.disk_usage(parent).free)


async def _pragma(db: aiosqlite.Connection, name: str) -> int:
    cursor = await db.execute(f"PRAGMA {name}")
    row = await cursor.fetchone()
    return int(row[0]) if row else 0


def _encode(value: Any, where: str) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StorageError(
            f"Value for {where!r} is not JSON serializable", StorageErrorCode.INVALID_DATA
        ) from exc


def _decode(raw: str, where: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageError(
            f"Stored value for {where!r} is not valid JSON", StorageErrorCode.INVALID_DATA
        ) from exc


def _translate(exc: Exception, action: str) -> StorageError:
    if is_quota_exceeded_error(exc):
        return StorageError(f"Storage quota exceeded: {action}", StorageErrorCode.QUOTA_EXCEEDED)
    if isinstance(exc, PermissionError):
        return StorageError(f"Permission denied: {action}", StorageErrorCode.PERMISSION_DENIED)
    return StorageError(f"Failed to {action}: {exc}", StorageErrorCode.UNKNOWN)
