"""Unit tests for the in-memory and SQLite key/value stores.

The SQLite tests use a temporary database per test for isolation.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from memo_llm.providers.storage.memory_store import MemoryKeyValueStore
from memo_llm.providers.storage.sqlite_store import SQLiteKeyValueStore
from memo_llm.utils.errors import StorageError


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> SQLiteKeyValueStore:
    store = SQLiteKeyValueStore(db_path=tmp_path / "nested" / "kv.db")
    await store.initialize()
    return store


@pytest.fixture(params=["memory", "sqlite"])
def store_kind(request) -> str:
    return request.param


@pytest_asyncio.fixture
async def store(store_kind: str, tmp_path: Path):
    if store_kind == "memory":
        return MemoryKeyValueStore()
    sqlite = SQLiteKeyValueStore(db_path=tmp_path / "kv.db")
    await sqlite.initialize()
    return sqlite


# ─── Shared contract ─────────────────────────────────────────────────


class TestStoreContract:
    @pytest.mark.asyncio
    async def test_absent_keys_are_omitted(self, store) -> None:
        await store.set({"a": 1})
        assert await store.get(["a", "missing"]) == {"a": 1}

    @pytest.mark.asyncio
    async def test_multi_key_write(self, store) -> None:
        await store.set(
            {
                "llmProviderConfigs": {"openai": {"type": "openai", "apiKey": "sk-1"}},
                "activeProvider": "openai",
            }
        )
        values = await store.get(["llmProviderConfigs", "activeProvider"])
        assert values["activeProvider"] == "openai"
        assert values["llmProviderConfigs"]["openai"]["apiKey"] == "sk-1"

    @pytest.mark.asyncio
    async def test_overwrite(self, store) -> None:
        await store.set({"k": "old"})
        await store.set({"k": "new"})
        assert await store.get(["k"]) == {"k": "new"}

    @pytest.mark.asyncio
    async def test_remove_ignores_missing(self, store) -> None:
        await store.set({"k": True, "other": None})
        await store.remove(["k", "never-set"])
        assert await store.get(["k", "other"]) == {"other": None}

    @pytest.mark.asyncio
    async def test_returned_values_are_copies(self, store) -> None:
        await store.set({"cfg": {"models": ["a"]}})
        first = await store.get(["cfg"])
        first["cfg"]["models"].append("b")
        assert await store.get(["cfg"]) == {"cfg": {"models": ["a"]}}

    @pytest.mark.asyncio
    async def test_non_json_value_writes_nothing(self, store) -> None:
        with pytest.raises(StorageError):
            await store.set({"good": 1, "bad": object()})
        assert await store.get(["good", "bad"]) == {}


# ─── Backend specifics ───────────────────────────────────────────────


class TestMemoryStore:
    def test_seeded_contents(self) -> None:
        store = MemoryKeyValueStore({"anthropicApiKey": "sk-ant-legacy"})
        assert store.snapshot() == {"anthropicApiKey": "sk-ant-legacy"}


class TestSQLiteStore:
    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, sqlite_store: SQLiteKeyValueStore, tmp_path: Path) -> None:
        assert (tmp_path / "nested" / "kv.db").exists()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, sqlite_store: SQLiteKeyValueStore, tmp_path: Path) -> None:
        await sqlite_store.set({"activeProvider": "gemini"})
        reopened = SQLiteKeyValueStore(db_path=tmp_path / "nested" / "kv.db")
        assert await reopened.get(["activeProvider"]) == {"activeProvider": "gemini"}

    @pytest.mark.asyncio
    async def test_lazy_initialize(self, tmp_path: Path) -> None:
        store = SQLiteKeyValueStore(db_path=tmp_path / "lazy.db")
        await store.set({"x": [1, 2]})
        assert await store.get(["x"]) == {"x": [1, 2]}

    @pytest.mark.asyncio
    async def test_empty_calls_are_noops(self, tmp_path: Path) -> None:
        store = SQLiteKeyValueStore(db_path=tmp_path / "noop.db")
        assert await store.get([]) == {}
        await store.set({})
        await store.remove([])
        assert not (tmp_path / "noop.db").exists()

    @pytest.mark.asyncio
    async def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = SQLiteKeyValueStore(db_path=blocker / "kv.db")
        with pytest.raises(StorageError):
            await store.initialize()
