"""Key/value store backends for persisted provider configuration."""

from memo_llm.providers.storage.memory_store import MemoryKeyValueStore
from memo_llm.providers.storage.sqlite_store import SQLiteKeyValueStore

__all__ = ["MemoryKeyValueStore", "SQLiteKeyValueStore"]
