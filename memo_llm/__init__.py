"""memo-llm: multi-provider LLM access and persisted provider configuration."""

__version__ = "0.1.0"
