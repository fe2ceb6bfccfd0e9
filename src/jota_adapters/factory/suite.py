"""Adapter factory: builds adapters and complete suites from configuration.

Dispatch is a closed ``match`` over the kind enums; adding a kind without a
constructor branch fails type checking at ``assert_never``.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Self, assert_never

from jota_adapters.audio.base import AudioAdapter
from jota_adapters.audio.mock import MockAudioAdapter
from jota_adapters.audio.native import NativeAudioAdapter
from jota_adapters.errors import ConfigurationError
from jota_adapters.factory.config import (
    DEFAULT_CONFIG,
    AdapterConfig,
    AudioConfig,
    AudioKind,
    NetworkConfig,
    NetworkKind,
    PlatformConfig,
    PlatformKind,
    StorageConfig,
    StorageKind,
    merge_config,
    resolve_data_dir,
)
from jota_adapters.factory.detection import get_recommended_config
from jota_adapters.network.base import NetworkAdapter
from jota_adapters.network.http import HttpNetworkAdapter
from jota_adapters.network.mock import MockNetworkAdapter
from jota_adapters.platform.base import PlatformAdapter
from jota_adapters.platform.mock import MockPlatformAdapter
from jota_adapters.platform.native import NativePlatformAdapter
from jota_adapters.storage.base import StorageAdapter
from jota_adapters.storage.document import DEFAULT_DB_NAME, DocumentStorage, DocumentStorageConfig
from jota_adapters.storage.hybrid import HybridStorage
from jota_adapters.storage.memory import MemoryStorage
from jota_adapters.storage.sync_backed import SyncBackedStorage
from jota_adapters.storage.sync_store import DbmKeyValueStore

logger = logging.getLogger(__name__)

ConfigOverrides = AdapterConfig | Mapping[str, Any] | None


def _hybrid_part(
    parent: StorageConfig, part: StorageConfig | None, default_kind: StorageKind
) -> StorageConfig:
    """Resolve a hybrid child config, inheriting location settings from the parent."""
    part = part or StorageConfig(kind=default_kind)
    if part.kind is StorageKind.HYBRID:
        raise ConfigurationError("Hybrid storage cannot contain another hybrid storage")
    return dataclasses.replace(
        part,
        prefix=part.prefix or parent.prefix,
        db_name=part.db_name if part.db_name != DEFAULT_DB_NAME else parent.db_name,
        data_dir=part.data_dir or parent.data_dir,
        max_quota=part.max_quota if part.max_quota is not None else parent.max_quota,
    )


def create_storage_adapter(config: StorageConfig) -> StorageAdapter:
    """Build the storage backend for config.

    Durable backends live under ``data_dir``: ``{db_name}.kv`` for the
    synchronous-backed store and ``{db_name}.sqlite3`` for the document store.

    Raises:
        ConfigurationError: If a hybrid contains a hybrid.
    """
    logger.debug("Creating %s storage (prefix=%r)", config.kind.value, config.prefix)
    match config.kind:
        case StorageKind.MEMORY:
            return MemoryStorage(prefix=config.prefix)
        case StorageKind.SYNC_BACKED:
            path = resolve_data_dir(config.data_dir) / f"{config.db_name}.kv"
            return SyncBackedStorage(DbmKeyValueStore(path), prefix=config.prefix)
        case StorageKind.DOCUMENT:
            path = resolve_data_dir(config.data_dir) / f"{config.db_name}.sqlite3"
            return DocumentStorage(
                DocumentStorageConfig(
                    db_path=path, prefix=config.prefix, max_quota=config.max_quota
                )
            )
        case StorageKind.HYBRID:
            small = _hybrid_part(config, config.small, StorageKind.SYNC_BACKED)
            large = _hybrid_part(config, config.large, StorageKind.DOCUMENT)
            return HybridStorage(create_storage_adapter(small), create_storage_adapter(large))
        case _:
            assert_never(config.kind)


def create_network_adapter(config: NetworkConfig) -> NetworkAdapter:
    """Build the network adapter for config."""
    match config.kind:
        case NetworkKind.FETCH:
            return HttpNetworkAdapter(
                base_url=config.base_url,
                timeout_ms=config.timeout_ms,
                headers=dict(config.headers),
                cache_enabled=config.cache.enabled,
                cache_max_age_ms=config.cache.max_age_ms,
                retry=config.retry,
                http2=config.http2,
            )
        case NetworkKind.MOCK:
            return MockNetworkAdapter(
                cache_enabled=config.cache.enabled, cache_max_age_ms=config.cache.max_age_ms
            )
        case _:
            assert_never(config.kind)


def create_audio_adapter(config: AudioConfig) -> AudioAdapter:
    """Build the audio adapter for config."""
    match config.kind:
        case AudioKind.NATIVE_ELEMENT:
            return NativeAudioAdapter(
                default_volume=config.default_volume,
                default_playback_rate=config.default_playback_rate,
                player_command=config.player_command,
            )
        case AudioKind.MOCK:
            return MockAudioAdapter(
                default_volume=config.default_volume,
                default_playback_rate=config.default_playback_rate,
            )
        case _:
            assert_never(config.kind)


def create_platform_adapter(config: PlatformConfig) -> PlatformAdapter:
    """Build the platform adapter for config."""
    match config.kind:
        case PlatformKind.NATIVE:
            return NativePlatformAdapter(base_dir=resolve_data_dir(config.base_dir))
        case PlatformKind.MOCK:
            return MockPlatformAdapter()
        case _:
            assert_never(config.kind)


@dataclass
class AdapterSuite:
    """One adapter per domain, sharing a lifetime.

    Example:
        ```python
        async with create_adapter_suite({"storage": {"kind": "memory"}}) as suite:
            await suite.storage.set("theme", "dark")
        ```
    """

    storage: StorageAdapter
    network: NetworkAdapter
    audio: AudioAdapter
    platform: PlatformAdapter

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close every adapter, even if some fail.

        Raises:
            ExceptionGroup: Every error raised while closing.
        """
        results = await asyncio.gather(
            self.storage.close(),
            self.network.close(),
            self.audio.close(),
            self.platform.close(),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            raise ExceptionGroup("Failed to close adapter suite", errors)


def _build_suite(config: AdapterConfig) -> AdapterSuite:
    return AdapterSuite(
        storage=create_storage_adapter(config.storage),
        network=create_network_adapter(config.network),
        audio=create_audio_adapter(config.audio),
        platform=create_platform_adapter(config.platform),
    )


def create_adapter_suite(config: ConfigOverrides = None) -> AdapterSuite:
    """Build a suite from caller options merged over the default configuration."""
    return _build_suite(merge_config(config, DEFAULT_CONFIG))


def create_recommended_suite(overrides: ConfigOverrides = None) -> AdapterSuite:
    """Build a suite from the detected configuration, with optional overrides."""
    return _build_suite(merge_config(overrides, get_recommended_config()))


class AdapterFactory:
    """Holds a configuration and builds adapters from it.

    Args:
        config: Caller options.
        defaults: Configuration the options are merged over.

    Example:
        ```python
        factory = AdapterFactory({"network": {"base_url": "https://api.example.com"}})
        network = factory.create_network()
        factory.update_config({"storage": {"prefix": "reader"}})
        ```
    """

    def __init__(self, config: ConfigOverrides = None, defaults: AdapterConfig = DEFAULT_CONFIG) -> None:
        self._config = merge_config(config, defaults)

    def get_config(self) -> AdapterConfig:
        return self._config

    def update_config(self, overrides: ConfigOverrides) -> AdapterConfig:
        """Shallow-merge overrides into the current configuration."""
        self._config = merge_config(overrides, self._config)
        return self._config

    def create_storage(self) -> StorageAdapter:
        return create_storage_adapter(self._config.storage)

    def create_network(self) -> NetworkAdapter:
        return create_network_adapter(self._config.network)

    def create_audio(self) -> AudioAdapter:
        return create_audio_adapter(self._config.audio)

    def create_platform(self) -> PlatformAdapter:
        return create_platform_adapter(self._config.platform)

    def create_suite(self) -> AdapterSuite:
        return _build_suite(self._config)
