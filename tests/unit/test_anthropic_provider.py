"""Unit tests for the Anthropic provider adapter (SDK fully mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from memo_llm.providers.llm.anthropic_provider import AnthropicProvider
from memo_llm.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    ContentBlockedError,
    LLMError,
    NotInitializedError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitError,
)

_SDK = "memo_llm.providers.llm.anthropic_provider.anthropic.AsyncAnthropic"
_URL = "https://api.anthropic.com/v1/messages"


def _response(text: str = "Hello back", stop_reason: str = "end_turn") -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.stop_reason = stop_reason
    response.usage = MagicMock(input_tokens=12, output_tokens=4)
    return response


def _status_error(cls, status: int, message: str):
    return cls(
        message=message,
        response=httpx.Response(status, request=httpx.Request("POST", _URL)),
        body=None,
    )


def _client(create) -> MagicMock:
    client = MagicMock()
    if isinstance(create, BaseException) or isinstance(create, list):
        client.messages.create = AsyncMock(side_effect=create)
    else:
        client.messages.create = AsyncMock(return_value=create)
    return client


async def _ready_provider(anthropic_config, settings, create) -> tuple[AnthropicProvider, MagicMock]:
    """Initialize against a key-check reply, then queue *create* for the next call(s)."""
    replies = create if isinstance(create, list) else [create]
    client = _client([_response("ok"), *replies])
    with patch(_SDK, return_value=client):
        provider = AnthropicProvider(anthropic_config, settings)
        await provider.initialize()
    return provider, client


class TestInitialize:
    @pytest.mark.asyncio
    async def test_bad_key_shape_makes_no_call(self, settings) -> None:
        from memo_llm.models.provider import CloudProviderConfig

        config = CloudProviderConfig(type="anthropic", api_key="sk-openai-style")
        with patch(_SDK) as sdk:
            provider = AnthropicProvider(config, settings)
            with pytest.raises(ConfigurationError):
                await provider.initialize()
        sdk.assert_not_called()
        assert provider.initialized is False

    @pytest.mark.asyncio
    async def test_success_sends_one_token_request(self, anthropic_config, settings) -> None:
        client = _client(_response("hi"))
        with patch(_SDK, return_value=client) as sdk:
            provider = AnthropicProvider(anthropic_config, settings)
            assert await provider.initialize() is True

        sdk.assert_called_once_with(api_key="sk-ant-validshape", max_retries=0)
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 1
        assert kwargs["model"] == "claude-3-5-haiku-20241022"
        assert provider.initialized is True
        assert provider.is_available() is True

    @pytest.mark.asyncio
    async def test_rejected_key(self, anthropic_config, settings) -> None:
        client = _client(_status_error(anthropic.AuthenticationError, 401, "invalid x-api-key"))
        with patch(_SDK, return_value=client):
            provider = AnthropicProvider(anthropic_config, settings)
            with pytest.raises(AuthenticationError) as exc_info:
                await provider.initialize()
        assert exc_info.value.provider_name == "anthropic"
        assert provider.initialized is False

    @pytest.mark.asyncio
    async def test_explicit_key_overrides_config(self, settings) -> None:
        from memo_llm.models.provider import CloudProviderConfig

        config = CloudProviderConfig(type="anthropic")
        client = _client(_response())
        with patch(_SDK, return_value=client) as sdk:
            provider = AnthropicProvider(config, settings)
            await provider.initialize("sk-ant-other")
        sdk.assert_called_once_with(api_key="sk-ant-other", max_retries=0)

    @pytest.mark.asyncio
    async def test_real_client_has_sdk_retries_disabled(self, anthropic_config, settings) -> None:
        create = AsyncMock(return_value=_response("ok"))
        with patch.object(anthropic.resources.AsyncMessages, "create", create):
            provider = AnthropicProvider(anthropic_config, settings)
            await provider.initialize()
        create.assert_awaited_once()
        assert provider._client.max_retries == 0


class TestChat:
    @pytest.mark.asyncio
    async def test_requires_initialize(self, anthropic_config, settings) -> None:
        provider = AnthropicProvider(anthropic_config, settings)
        with pytest.raises(NotInitializedError):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_system_turns_become_system_kwarg(self, anthropic_config, settings) -> None:
        provider, client = await _ready_provider(anthropic_config, settings, _response("Answer"))

        result = await provider.chat(
            [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "What is techno?"},
            ],
            {"temperature": 0.2, "max_tokens": 100, "top_k": 5, "seed": 1},
        )

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Be brief."
        assert kwargs["messages"] == [{"role": "user", "content": "What is techno?"}]
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 100
        assert kwargs["top_k"] == 5
        assert "seed" not in kwargs
        assert result.reply == "Answer"
        assert result.usage.total_tokens == 16

    @pytest.mark.asyncio
    async def test_refusal_is_content_blocked(self, anthropic_config, settings) -> None:
        provider, _ = await _ready_provider(anthropic_config, settings, _response("", "refusal"))
        with pytest.raises(ContentBlockedError):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_no_text_blocks(self, anthropic_config, settings) -> None:
        response = _response()
        response.content = []
        provider, _ = await _ready_provider(anthropic_config, settings, response)
        with pytest.raises(LLMError, match="no text content"):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_rate_limit_and_quota(self, anthropic_config, settings) -> None:
        provider, _ = await _ready_provider(
            anthropic_config,
            settings,
            [
                _status_error(anthropic.RateLimitError, 429, "rate_limit_error"),
                _status_error(anthropic.BadRequestError, 400, "Your credit balance is too low"),
            ],
        )
        with pytest.raises(RateLimitError) as first:
            await provider.chat([{"role": "user", "content": "hi"}])
        assert not isinstance(first.value, QuotaExceededError)
        with pytest.raises(QuotaExceededError):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_connection_error(self, anthropic_config, settings) -> None:
        error = anthropic.APIConnectionError(request=httpx.Request("POST", _URL))
        provider, _ = await _ready_provider(anthropic_config, settings, error)
        with pytest.raises(ProviderUnavailableError):
            await provider.chat([{"role": "user", "content": "hi"}])


class TestMetadata:
    def test_token_estimate_is_monotonic(self, anthropic_config, settings) -> None:
        provider = AnthropicProvider(anthropic_config, settings)
        assert provider.calculate_tokens("") == 0
        assert provider.calculate_tokens("abcd") == 1
        assert provider.calculate_tokens("abcde") == 2
        assert provider.calculate_tokens("x" * 100) <= provider.calculate_tokens("x" * 101)

    def test_vision_and_info(self, anthropic_config, settings) -> None:
        provider = AnthropicProvider(anthropic_config, settings)
        assert provider.supports_vision() is True
        info = provider.get_provider_info()
        assert info.model == "claude-3-5-haiku-20241022"
        assert info.initialized is False
        assert provider.get_provider_name() == "anthropic"
