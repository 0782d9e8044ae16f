"""Data models shared across memo-llm."""

from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    ChatResult,
    CloudProviderConfig,
    ConfigStatus,
    ConnectionTestResult,
    LocalProviderConfig,
    MemoResult,
    ProviderConfig,
    ProviderDescriptor,
    ProviderInfo,
    ProviderType,
    TokenUsage,
    normalize_messages,
    parse_provider_config,
)

__all__ = [
    "ChatMessage",
    "ChatOptions",
    "ChatResult",
    "CloudProviderConfig",
    "ConfigStatus",
    "ConnectionTestResult",
    "LocalProviderConfig",
    "MemoResult",
    "ProviderConfig",
    "ProviderDescriptor",
    "ProviderInfo",
    "ProviderType",
    "TokenUsage",
    "normalize_messages",
    "parse_provider_config",
]
