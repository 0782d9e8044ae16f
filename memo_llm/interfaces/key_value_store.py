"""Abstract base class for the persisted key/value store.

Provider configuration lives under a handful of top-level keys in a
JSON-valued store (``llmProviderConfigs``, ``activeProvider``, and the
legacy ``llmConfig`` / ``anthropicApiKey`` records).  The configuration
manager only talks to this interface, so the backend can be an in-memory
dict in tests and SQLite in a long-running process.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any


class IKeyValueStore(ABC):
    """Contract for JSON-valued key/value persistence.

    All operations are async.  Values are plain JSON data (dicts, lists,
    strings, numbers, booleans, ``None``); callers never receive a reference
    into the store's own state.
    """

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the stored values for *keys*.

        Keys that are not present are omitted from the result rather than
        mapped to ``None``.

        Raises
        ------
        memo_llm.utils.errors.StorageError
            If the backend cannot be read.
        """

    @abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Write every entry of *items* as one unit.

        Either all entries are stored or, on failure, none are.

        Raises
        ------
        memo_llm.utils.errors.StorageError
            If the backend cannot be written.
        """

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Delete *keys*.  Missing keys are ignored."""
