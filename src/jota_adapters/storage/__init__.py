"""Storage backends behind one async key-value and collection contract."""

from jota_adapters.storage.base import KeyNamespace, StorageAdapter, StorageChangeEvent
from jota_adapters.storage.document import DocumentStorage, DocumentStorageConfig, StorageEstimate
from jota_adapters.storage.hybrid import HybridStorage
from jota_adapters.storage.memory import MemoryStorage, MemoryStore
from jota_adapters.storage.sync_backed import SyncBackedStorage
from jota_adapters.storage.sync_store import (
    DbmKeyValueStore,
    DictKeyValueStore,
    QuotaExceededError,
    SyncKeyValueStore,
    SyncStorage,
    is_quota_exceeded_error,
)

__all__ = [
    "DbmKeyValueStore",
    "DictKeyValueStore",
    "DocumentStorage",
    "DocumentStorageConfig",
    "HybridStorage",
    "KeyNamespace",
    "MemoryStorage",
    "MemoryStore",
    "QuotaExceededError",
    "StorageAdapter",
    "StorageChangeEvent",
    "StorageEstimate",
    "SyncBackedStorage",
    "SyncKeyValueStore",
    "SyncStorage",
    "is_quota_exceeded_error",
]
