"""Public interface definitions for memo-llm.

Every LLM backend and the configuration store are accessed exclusively
through the abstract base classes defined here.  Concrete adapters live in
``memo_llm/providers/`` and are wired together in ``memo_llm/main.py``.

CONCRETE IMPLEMENTATION MAP:
    Interface        ->  Concrete implementations (in memo_llm/providers/)
    ---------------------------------------------------------------------
    ILLMProvider     ->  AnthropicProvider, OpenAIProvider, GeminiProvider,
                         OllamaProvider
    IKeyValueStore   ->  MemoryKeyValueStore, SQLiteKeyValueStore
"""

from memo_llm.interfaces.key_value_store import IKeyValueStore
from memo_llm.interfaces.llm_provider import ILLMProvider

__all__ = ["IKeyValueStore", "ILLMProvider"]
