"""Pytest configuration and fixtures for jota-adapters tests."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from jota_adapters.storage import DocumentStorage, DocumentStorageConfig, MemoryStorage

JOTA_ENV_VARS = (
    "JOTA_ENVIRONMENT",
    "JOTA_DATA_DIR",
    "JOTA_OFFLINE",
    "JOTA_HTTP_TIMEOUT_MS",
    "JOTA_CACHE_TTL_MS",
)


@pytest.fixture(autouse=True)
def clean_jota_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test without JOTA_* variables leaking in from the shell."""
    for name in JOTA_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    """Provide an empty directory for durable stores."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture()
def memory_storage() -> MemoryStorage:
    """Provide an unprefixed in-memory backend."""
    return MemoryStorage()


@pytest_asyncio.fixture()
async def document_storage(data_dir: Path) -> AsyncIterator[DocumentStorage]:
    """Provide a document backend on a temporary database file."""
    storage = DocumentStorage(DocumentStorageConfig(db_path=data_dir / "jota-db.sqlite3"))
    try:
        yield storage
    finally:
        await storage.close()
