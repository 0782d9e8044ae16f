"""SQLite-backed key/value store.

Persists provider configuration to a local SQLite database at
``data/memo_store.db`` (``STORAGE_DB_PATH``).  Uses ``aiosqlite`` for
async I/O; values are stored as JSON text.  Each ``set`` runs in a single
transaction, so a multi-key write is all-or-nothing.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from memo_llm.interfaces.key_value_store import IKeyValueStore
from memo_llm.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/memo_store.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_UPSERT_SQL = """\
INSERT INTO kv_store (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET
    value = excluded.value,
    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


class SQLiteKeyValueStore(IKeyValueStore):
    """SQLite-backed JSON key/value persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._ready = False

    async def initialize(self) -> None:
        """Create the ``kv_store`` table if it doesn't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Could not initialise key/value store at {self._db_path}: {exc}") from exc
        self._ready = True
        logger.info("kv_store_initialized", path=str(self._db_path))

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.initialize()

    # ------------------------------------------------------------------
    # IKeyValueStore implementation
    # ------------------------------------------------------------------

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}
        await self._ensure_ready()

        placeholders = ", ".join("?" for _ in wanted)
        query = f"SELECT key, value FROM kv_store WHERE key IN ({placeholders});"
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(query, wanted)
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Key/value read failed: {exc}") from exc

        result: dict[str, Any] = {}
        for key, raw in rows:
            try:
                result[key] = json.loads(raw)
            except ValueError as exc:
                raise StorageError(f"Stored value for '{key}' is not valid JSON") from exc
        return result

    async def set(self, items: Mapping[str, Any]) -> None:
        if not items:
            return
        try:
            rows = [(key, json.dumps(value)) for key, value in items.items()]
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value is not JSON-serialisable: {exc}") from exc
        await self._ensure_ready()

        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                try:
                    await db.executemany(_UPSERT_SQL, rows)
                    await db.commit()
                except sqlite3.Error:
                    await db.rollback()
                    raise
        except sqlite3.Error as exc:
            raise StorageError(f"Key/value write failed: {exc}") from exc
        logger.debug("kv_set", keys=sorted(items))

    async def remove(self, keys: Iterable[str]) -> None:
        doomed = list(dict.fromkeys(keys))
        if not doomed:
            return
        await self._ensure_ready()

        placeholders = ", ".join("?" for _ in doomed)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(f"DELETE FROM kv_store WHERE key IN ({placeholders});", doomed)
                await db.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Key/value delete failed: {exc}") from exc
        logger.debug("kv_remove", keys=doomed)
