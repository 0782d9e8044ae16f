"""In-memory key/value store.

Dict-backed implementation of :class:`IKeyValueStore` for tests and
short-lived processes.  Values go through a JSON round-trip on the way in
and out, so callers get the same value semantics as the SQLite backend: no
shared references and nothing that is not plain JSON.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from memo_llm.interfaces.key_value_store import IKeyValueStore
from memo_llm.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Value for '{key}' is not JSON-serialisable: {exc}") from exc


class MemoryKeyValueStore(IKeyValueStore):
    """Process-local store holding JSON-encoded values in a dict.

    Parameters
    ----------
    initial:
        Optional starting contents (handy for seeding legacy records in tests).
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = _encode(key, value)

    # ------------------------------------------------------------------
    # IKeyValueStore implementation
    # ------------------------------------------------------------------

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: json.loads(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        # Encode everything first so a bad value leaves the store untouched.
        encoded = {key: _encode(key, value) for key, value in items.items()}
        self._data.update(encoded)
        logger.debug("kv_set", keys=sorted(encoded))

    async def remove(self, keys: Iterable[str]) -> None:
        removed = [key for key in keys if self._data.pop(key, None) is not None]
        logger.debug("kv_remove", keys=removed)

    def snapshot(self) -> dict[str, Any]:
        """Return a decoded copy of the whole store."""
        return {key: json.loads(raw) for key, raw in self._data.items()}
