"""Tests for the adapter factory and suites."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from jota_adapters.audio import MockAudioAdapter, NativeAudioAdapter
from jota_adapters.errors import ConfigurationError
from jota_adapters.factory import (
    AdapterFactory,
    AdapterSuite,
    AudioConfig,
    AudioKind,
    CacheConfig,
    NetworkConfig,
    NetworkKind,
    PlatformConfig,
    PlatformKind,
    StorageConfig,
    StorageKind,
    create_adapter_suite,
    create_audio_adapter,
    create_network_adapter,
    create_platform_adapter,
    create_recommended_suite,
    create_storage_adapter,
)
from jota_adapters.network import HttpNetworkAdapter, MockNetworkAdapter
from jota_adapters.platform import MockPlatformAdapter, NativePlatformAdapter
from jota_adapters.storage import (
    DocumentStorage,
    HybridStorage,
    MemoryStorage,
    SyncBackedStorage,
)
from jota_adapters.storage.sync_store import DbmKeyValueStore


class TestCreateStorageAdapter:
    """Tests for storage dispatch."""

    def test_memory(self) -> None:
        """MEMORY should build a prefixed MemoryStorage."""
        storage = create_storage_adapter(StorageConfig(kind=StorageKind.MEMORY, prefix="app"))

        assert isinstance(storage, MemoryStorage)
        assert storage.prefix == "app"

    @pytest.mark.asyncio
    async def test_sync_backed_file(self, data_dir: Path) -> None:
        """SYNC_BACKED should store into ``{db_name}.kv`` under data_dir."""
        storage = create_storage_adapter(
            StorageConfig(kind=StorageKind.SYNC_BACKED, data_dir=data_dir, db_name="reader")
        )
        assert isinstance(storage, SyncBackedStorage)
        store = storage.sync_storage.store
        assert isinstance(store, DbmKeyValueStore)
        assert store.path == data_dir / "reader.kv"

        await storage.set("theme", "dark")
        await storage.close()

        assert data_dir.is_dir()

    def test_document_file(self, data_dir: Path) -> None:
        """DOCUMENT should target ``{db_name}.sqlite3`` and keep the quota."""
        storage = create_storage_adapter(
            StorageConfig(kind=StorageKind.DOCUMENT, data_dir=data_dir, max_quota=1 << 20)
        )

        assert isinstance(storage, DocumentStorage)
        assert storage.config.db_path == data_dir / "jota-db.sqlite3"
        assert storage.config.max_quota == 1 << 20

    def test_hybrid_inherits_location(self, data_dir: Path) -> None:
        """Hybrid parts should inherit prefix, data_dir and db_name."""
        storage = create_storage_adapter(
            StorageConfig(kind=StorageKind.HYBRID, prefix="app", data_dir=data_dir)
        )

        assert isinstance(storage, HybridStorage)
        assert isinstance(storage.small, SyncBackedStorage)
        assert isinstance(storage.large, DocumentStorage)
        assert storage.small.prefix == storage.large.prefix == "app"
        assert storage.large.config.db_path.parent == data_dir

    def test_hybrid_with_explicit_parts(self) -> None:
        """Explicit hybrid parts should be honored."""
        storage = create_storage_adapter(
            StorageConfig(
                kind=StorageKind.HYBRID,
                small=StorageConfig(kind=StorageKind.MEMORY),
                large=StorageConfig(kind=StorageKind.MEMORY, prefix="big"),
            )
        )

        assert isinstance(storage, HybridStorage)
        assert isinstance(storage.small, MemoryStorage)
        assert storage.large.prefix == "big"

    def test_nested_hybrid_is_rejected(self) -> None:
        """A hybrid inside a hybrid should be a ConfigurationError."""
        config = StorageConfig(
            kind=StorageKind.HYBRID, small=StorageConfig(kind=StorageKind.HYBRID)
        )

        with pytest.raises(ConfigurationError):
            create_storage_adapter(config)


class TestCreateOtherAdapters:
    """Tests for network, audio and platform dispatch."""

    @pytest.mark.asyncio
    async def test_network(self) -> None:
        """FETCH and MOCK should build the matching adapters."""
        fetch = create_network_adapter(
            NetworkConfig(kind=NetworkKind.FETCH, base_url="https://api.example.com")
        )
        mock = create_network_adapter(NetworkConfig(kind=NetworkKind.MOCK))

        assert isinstance(fetch, HttpNetworkAdapter)
        assert fetch.build_url("/books") == "https://api.example.com/books"
        assert isinstance(mock, MockNetworkAdapter)
        await fetch.close()

    @pytest.mark.asyncio
    async def test_zero_cache_age_reaches_the_adapter(self) -> None:
        """CacheConfig(max_age_ms=0) should not turn into the default TTL."""
        cache = CacheConfig(max_age_ms=0)
        fetch = create_network_adapter(NetworkConfig(kind=NetworkKind.FETCH, cache=cache))
        mock = create_network_adapter(NetworkConfig(kind=NetworkKind.MOCK, cache=cache))

        assert isinstance(fetch, HttpNetworkAdapter)
        assert isinstance(mock, MockNetworkAdapter)
        assert fetch.cache.default_ttl_ms == 0
        assert mock.cache.default_ttl_ms == 0
        await fetch.close()

    def test_audio(self) -> None:
        """NATIVE_ELEMENT and MOCK should build the matching adapters."""
        assert isinstance(
            create_audio_adapter(AudioConfig(kind=AudioKind.NATIVE_ELEMENT)), NativeAudioAdapter
        )
        assert isinstance(create_audio_adapter(AudioConfig(kind=AudioKind.MOCK)), MockAudioAdapter)

    def test_platform(self, data_dir: Path) -> None:
        """NATIVE should sandbox under base_dir; MOCK should be in memory."""
        native = create_platform_adapter(PlatformConfig(kind=PlatformKind.NATIVE, base_dir=data_dir))

        assert isinstance(native, NativePlatformAdapter)
        assert native.base_dir == data_dir
        assert isinstance(
            create_platform_adapter(PlatformConfig(kind=PlatformKind.MOCK)), MockPlatformAdapter
        )


class TestAdapterSuite:
    """Tests for suites and their shared lifetime."""

    @pytest.mark.asyncio
    async def test_create_from_mapping(self) -> None:
        """Mapping overrides should pick each adapter kind."""
        suite = create_adapter_suite(
            {
                "storage": {"kind": "memory"},
                "network": {"kind": "mock"},
                "audio": {"kind": "mock"},
                "platform": {"kind": "mock"},
            }
        )

        async with suite:
            await suite.storage.set("theme", "dark")
            assert await suite.storage.get("theme") == "dark"

        assert isinstance(suite.network, MockNetworkAdapter)
        assert isinstance(suite.audio, MockAudioAdapter)
        assert isinstance(suite.platform, MockPlatformAdapter)

    @pytest.mark.asyncio
    async def test_recommended_under_test(self) -> None:
        """The recommended suite under pytest should be all in-memory."""
        async with create_recommended_suite() as suite:
            assert isinstance(suite.storage, MemoryStorage)
            assert isinstance(suite.network, MockNetworkAdapter)

    @pytest.mark.asyncio
    async def test_recommended_with_overrides(self) -> None:
        """Overrides should apply on top of the recommendation."""
        async with create_recommended_suite({"storage": {"prefix": "app"}}) as suite:
            assert isinstance(suite.storage, MemoryStorage)
            assert suite.storage.prefix == "app"

    @pytest.mark.asyncio
    async def test_close_collects_errors(self) -> None:
        """Every adapter should be closed and all failures grouped."""
        storage = AsyncMock()
        storage.close.side_effect = RuntimeError("storage")
        network = AsyncMock()
        audio = AsyncMock()
        audio.close.side_effect = OSError("audio")
        platform = AsyncMock()
        suite = AdapterSuite(storage=storage, network=network, audio=audio, platform=platform)

        with pytest.raises(ExceptionGroup) as exc_info:
            await suite.close()

        assert len(exc_info.value.exceptions) == 2
        for adapter in (storage, network, audio, platform):
            adapter.close.assert_awaited_once()


class TestAdapterFactory:
    """Tests for the stateful factory."""

    def test_update_config_merges(self) -> None:
        """update_config should merge over the current configuration."""
        factory = AdapterFactory({"storage": {"kind": "memory", "prefix": "a"}})

        updated = factory.update_config({"network": {"kind": "mock"}})

        assert updated is factory.get_config()
        assert updated.storage.prefix == "a"
        assert updated.network.kind is NetworkKind.MOCK

    @pytest.mark.asyncio
    async def test_creates_from_current_config(self) -> None:
        """Adapters should follow the latest configuration."""
        factory = AdapterFactory(
            {
                "storage": {"kind": "memory"},
                "network": {"kind": "mock"},
                "audio": {"kind": "mock"},
                "platform": {"kind": "mock"},
            }
        )
        factory.update_config({"storage": {"prefix": "reader"}})

        storage = factory.create_storage()
        assert isinstance(storage, MemoryStorage)
        assert storage.prefix == "reader"
        assert isinstance(factory.create_network(), MockNetworkAdapter)
        assert isinstance(factory.create_audio(), MockAudioAdapter)
        assert isinstance(factory.create_platform(), MockPlatformAdapter)

        async with factory.create_suite() as suite:
            assert isinstance(suite.storage, MemoryStorage)
