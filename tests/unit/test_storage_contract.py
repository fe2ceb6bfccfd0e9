"""Contract tests run against every storage backend."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
import pytest_asyncio

from jota_adapters.storage import (
    DictKeyValueStore,
    DocumentStorage,
    DocumentStorageConfig,
    MemoryStorage,
    MemoryStore,
    StorageAdapter,
    StorageChangeEvent,
    SyncBackedStorage,
)

BACKENDS = ("memory", "sync-backed", "document")


def make_factory(kind: str, tmp_path: Path) -> Callable[[str], StorageAdapter]:
    """Return a builder of differently prefixed views of one physical backend."""
    if kind == "memory":
        store = MemoryStore()
        return lambda prefix: MemoryStorage(prefix=prefix, store=store)
    if kind == "sync-backed":
        kv = DictKeyValueStore()
        return lambda prefix: SyncBackedStorage(kv, prefix=prefix)
    db_path = tmp_path / "contract.sqlite3"
    return lambda prefix: DocumentStorage(DocumentStorageConfig(db_path=db_path, prefix=prefix))


@pytest.fixture(params=BACKENDS)
def backend_factory(request: pytest.FixtureRequest, tmp_path: Path) -> Callable[[str], StorageAdapter]:
    return make_factory(request.param, tmp_path)


@pytest_asyncio.fixture()
async def storage(
    backend_factory: Callable[[str], StorageAdapter],
) -> AsyncIterator[StorageAdapter]:
    adapter = backend_factory("")
    try:
        yield adapter
    finally:
        await adapter.close()


class TestKeyValue:
    """Key-value round-trip, tombstones and listing."""

    def test_backend_satisfies_protocol(self, storage: StorageAdapter) -> None:
        """Every backend should be a StorageAdapter."""
        assert isinstance(storage, StorageAdapter)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value",
        [1, 0, "text", "", True, False, 3.5, [1, "two", None], {"nested": {"list": [1, 2]}}],
    )
    async def test_round_trip(self, storage: StorageAdapter, value: object) -> None:
        """get should return what set stored."""
        await storage.set("k", value)
        assert await storage.get("k") == value

    @pytest.mark.asyncio
    async def test_missing_key_reads_none(self, storage: StorageAdapter) -> None:
        """Absent keys should read as None rather than raising."""
        assert await storage.get("missing") is None

    @pytest.mark.asyncio
    async def test_delete_leaves_tombstone(self, storage: StorageAdapter) -> None:
        """get after delete should return None."""
        await storage.set("a", 1)
        assert await storage.get("a") == 1

        await storage.delete("a")

        assert await storage.get("a") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, storage: StorageAdapter) -> None:
        """Deleting an absent key should not raise."""
        await storage.delete("never-set")
        assert await storage.keys() == []

    @pytest.mark.asyncio
    async def test_overwrite_keeps_single_key(self, storage: StorageAdapter) -> None:
        """Writing a key twice should keep one entry with the latest value."""
        await storage.set("theme", "light")
        await storage.set("theme", "dark")

        assert await storage.get("theme") == "dark"
        assert await storage.keys() == ["theme"]

    @pytest.mark.asyncio
    async def test_keys_exclude_collections(self, storage: StorageAdapter) -> None:
        """Structured items should not show up as keys."""
        await storage.set("a", 1)
        await storage.set("b", 2)
        await storage.set_structured("bookmarks", "1", {"verse": "John 3:16"})

        assert sorted(await storage.keys()) == ["a", "b"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["_coll_posts_1", "_kv_theme", "_kv__coll_x"])
    async def test_marker_like_key_stays_a_plain_key(self, storage: StorageAdapter, key: str) -> None:
        """A key shaped like an internal flat key should behave like any other key."""
        await storage.set(key, {"v": 1})

        assert await storage.get(key) == {"v": 1}
        assert await storage.keys() == [key]
        assert await storage.get_batch([key]) == {key: {"v": 1}}
        assert await storage.list_structured("posts") == []
        assert await storage.get_structured("posts", "1") is None

        await storage.delete_structured("posts")
        assert await storage.get(key) == {"v": 1}

        await storage.delete(key)
        assert await storage.keys() == []

    @pytest.mark.asyncio
    async def test_plain_key_does_not_shadow_collection_item(self, storage: StorageAdapter) -> None:
        """A collection item and a plain key with its flat name should not overwrite each other."""
        await storage.set_structured("posts", "1", "item")
        await storage.set("_coll_posts_1", "plain")

        assert await storage.get_structured("posts", "1") == "item"
        assert await storage.get("_coll_posts_1") == "plain"
        assert await storage.list_structured("posts") == ["1"]

    @pytest.mark.asyncio
    async def test_batch_round_trip(self, storage: StorageAdapter) -> None:
        """get_batch should report every requested key, None for absent ones."""
        await storage.set_batch({"x": 1, "y": {"z": True}})

        result = await storage.get_batch(["x", "y", "missing"])

        assert result == {"x": 1, "y": {"z": True}, "missing": None}

    @pytest.mark.asyncio
    async def test_clear_without_prefix_empties_everything(self, storage: StorageAdapter) -> None:
        """clear() on an unprefixed instance should drop keys and collections."""
        await storage.set("a", 1)
        await storage.set_structured("notes", "1", "text")

        await storage.clear()

        assert await storage.keys() == []
        assert await storage.list_structured("notes") == []


class TestPrefixIsolation:
    """Differently prefixed instances sharing one physical backend."""

    @pytest.mark.asyncio
    async def test_clear_only_removes_own_namespace(
        self, backend_factory: Callable[[str], StorageAdapter]
    ) -> None:
        """clear() with prefix P should leave other prefixes untouched."""
        reader = backend_factory("reader")
        settings = backend_factory("settings")
        try:
            await reader.set("last", "John 3")
            await settings.set("theme", "dark")
            await reader.set_structured("notes", "1", "mine")
            await settings.set_structured("notes", "1", "theirs")

            await reader.clear()

            assert await reader.get("last") is None
            assert await reader.list_structured("notes") == []
            assert await settings.get("theme") == "dark"
            assert await settings.get_structured("notes", "1") == "theirs"
        finally:
            await reader.close()
            await settings.close()

    @pytest.mark.asyncio
    async def test_keys_are_scoped_and_unprefixed(
        self, backend_factory: Callable[[str], StorageAdapter]
    ) -> None:
        """keys() should list only this namespace, without the prefix."""
        app = backend_factory("app")
        other = backend_factory("app2")
        try:
            await app.set("a", 1)
            await other.set("b", 2)

            assert await app.keys() == ["a"]
            assert await other.keys() == ["b"]
            assert await app.get("b") is None
        finally:
            await app.close()
            await other.close()


class TestStructured:
    """Collection round-trip, listing and deletion."""

    @pytest.mark.asyncio
    async def test_structured_round_trip(self, storage: StorageAdapter) -> None:
        """get_structured should return what set_structured stored."""
        await storage.set_structured("posts", "1", {"title": "x"})

        assert await storage.get_structured("posts", "1") == {"title": "x"}
        assert await storage.get_structured("posts", "2") is None
        assert await storage.get_structured("other", "1") is None

    @pytest.mark.asyncio
    async def test_list_returns_exactly_written_ids(self, storage: StorageAdapter) -> None:
        """list_structured should hold every written id and nothing else."""
        await storage.set_structured("posts", "1", {"title": "x"})
        await storage.set_structured("posts", "2", {"title": "y"})
        await storage.set_structured("posts_archive", "3", {"title": "z"})
        await storage.set("posts", "not an item")

        assert sorted(await storage.list_structured("posts")) == ["1", "2"]
        assert await storage.list_structured("empty") == []

    @pytest.mark.asyncio
    async def test_delete_item(self, storage: StorageAdapter) -> None:
        """Deleting one id should keep the rest of the collection."""
        await storage.set_structured("posts", "1", {"title": "x"})
        await storage.set_structured("posts", "2", {"title": "y"})

        await storage.delete_structured("posts", "1")

        assert await storage.list_structured("posts") == ["2"]

    @pytest.mark.asyncio
    async def test_delete_collection_leaves_others(self, storage: StorageAdapter) -> None:
        """Deleting a whole collection should not touch other collections."""
        await storage.set_structured("a", "1", 1)
        await storage.set_structured("a", "2", 2)
        await storage.set_structured("a_b", "1", 3)
        await storage.set_structured("b", "1", 4)

        await storage.delete_structured("a")

        assert await storage.list_structured("a") == []
        assert await storage.list_structured("a_b") == ["1"]
        assert await storage.get_structured("b", "1") == 4


class TestChangeNotification:
    """Change events for key-value mutations."""

    @pytest.mark.asyncio
    async def test_set_and_delete_events(self, storage: StorageAdapter) -> None:
        """set then delete should deliver one event each with prior values."""
        events: list[StorageChangeEvent] = []
        unsubscribe = storage.on_changed(events.append)

        await storage.set("k", 1)
        assert events == [StorageChangeEvent("k", None, 1)]

        await storage.delete("k")
        assert events[1:] == [StorageChangeEvent("k", 1, None)]

        unsubscribe()
        await storage.set("k", 2)
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_overwrite_reports_old_value(self, storage: StorageAdapter) -> None:
        """A second set should carry the first value as old_value."""
        events: list[StorageChangeEvent] = []
        await storage.set("k", "a")
        storage.on_changed(events.append)

        await storage.set("k", "b")

        assert events == [StorageChangeEvent("k", "a", "b")]

    @pytest.mark.asyncio
    async def test_batch_emits_one_event_per_key(self, storage: StorageAdapter) -> None:
        """set_batch should notify for every key written."""
        events: list[StorageChangeEvent] = []
        storage.on_changed(events.append)

        await storage.set_batch({"x": 1, "y": 2})

        assert sorted(e.key for e in events) == ["x", "y"]

    @pytest.mark.asyncio
    async def test_structured_mutations_emit_nothing(self, storage: StorageAdapter) -> None:
        """Collection writes and deletes should not notify key listeners."""
        events: list[StorageChangeEvent] = []
        storage.on_changed(events.append)

        await storage.set_structured("c", "1", {})
        await storage.delete_structured("c", "1")
        await storage.delete_structured("c")

        assert events == []

    @pytest.mark.asyncio
    async def test_listener_error_does_not_abort_write(self, storage: StorageAdapter) -> None:
        """A raising listener should not undo or block the mutation."""

        def broken(_: StorageChangeEvent) -> None:
            raise RuntimeError("listener failed")

        storage.on_changed(broken)

        await storage.set("k", 1)

        assert await storage.get("k") == 1
