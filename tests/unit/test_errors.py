"""Unit tests for the memo-llm exception hierarchy."""

from __future__ import annotations

import pytest

from memo_llm.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    ContentBlockedError,
    LLMError,
    MemoLLMError,
    OriginRejectedError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitError,
    ResponseParseError,
    StorageError,
    UnknownProviderTypeError,
)


class TestMemoLLMError:
    def test_str_without_provider(self) -> None:
        err = MemoLLMError("boom")
        assert str(err) == "boom"
        assert err.message == "boom"
        assert err.provider_name is None

    def test_str_prefixes_provider(self) -> None:
        err = RateLimitError("Rate limit exceeded", provider_name="openai")
        assert str(err) == "[openai] Rate limit exceeded"


class TestHierarchy:
    @pytest.mark.parametrize(
        ("child", "parent"),
        [
            (UnknownProviderTypeError, ConfigurationError),
            (QuotaExceededError, RateLimitError),
            (ProviderTimeoutError, ProviderUnavailableError),
            (OriginRejectedError, ProviderUnavailableError),
            (ContentBlockedError, LLMError),
            (ResponseParseError, LLMError),
            (AuthenticationError, MemoLLMError),
            (StorageError, MemoLLMError),
            (ProviderNotConfiguredError, MemoLLMError),
        ],
    )
    def test_subclass(self, child: type, parent: type) -> None:
        assert issubclass(child, parent)

    def test_auth_is_not_rate_limit(self) -> None:
        assert not issubclass(AuthenticationError, RateLimitError)


class TestSpecificErrors:
    def test_unknown_provider_type_names_type(self) -> None:
        err = UnknownProviderTypeError("unknown-type")
        assert "unknown-type" in str(err)
        assert err.provider_type == "unknown-type"

    def test_response_parse_error_keeps_excerpt(self) -> None:
        err = ResponseParseError("bad reply", provider_name="gemini", excerpt="not json")
        assert err.excerpt == "not json"
        assert str(err).startswith("[gemini]")

    def test_not_configured_default_message_points_to_settings(self) -> None:
        assert "Settings" in ProviderNotConfiguredError().message

    def test_content_blocked_default_message(self) -> None:
        assert "safety filters" in ContentBlockedError().message
