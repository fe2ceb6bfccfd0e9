"""Jota adapters.

Pluggable persistence, caching and platform adapters for the Jota Bible
reader: interchangeable storage backends behind one async contract, an HTTP
client with a TTL response cache, audio playback and host integration, all
assembled by a capability-aware factory.
"""

from jota_adapters.errors import (
    AudioError,
    AudioErrorCode,
    ConfigurationError,
    NetworkError,
    NetworkErrorCode,
    PlatformError,
    PlatformErrorCode,
    StorageError,
    StorageErrorCode,
)
from jota_adapters.factory import (
    AdapterConfig,
    AdapterFactory,
    AdapterSuite,
    create_adapter_suite,
    create_recommended_suite,
    get_recommended_config,
)
from jota_adapters.storage import (
    DocumentStorage,
    HybridStorage,
    MemoryStorage,
    StorageAdapter,
    SyncBackedStorage,
)

__version__ = "0.1.0"

__all__ = [
    "AdapterConfig",
    "AdapterFactory",
    "AdapterSuite",
    "AudioError",
    "AudioErrorCode",
    "ConfigurationError",
    "DocumentStorage",
    "HybridStorage",
    "MemoryStorage",
    "NetworkError",
    "NetworkErrorCode",
    "PlatformError",
    "PlatformErrorCode",
    "StorageAdapter",
    "StorageError",
    "StorageErrorCode",
    "SyncBackedStorage",
    "create_adapter_suite",
    "create_recommended_suite",
    "get_recommended_config",
]
