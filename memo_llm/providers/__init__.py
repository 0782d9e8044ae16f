"""Concrete adapters for the interfaces in ``memo_llm.interfaces``."""
