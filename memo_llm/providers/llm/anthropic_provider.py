"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`
via the Claude Messages API.

Key differences from the OpenAI adapter:
    - System prompt is a separate ``system`` parameter, not a message, so
      every system turn is joined into it
    - Response content is a list of blocks; text blocks are joined
    - Credential check is a one-token ``messages.create`` (there is no
      cheap "list models" call that validates a key)
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

# The official Anthropic Python SDK (async version).
import anthropic
import structlog

from memo_llm.config.provider_catalog import check_api_key_shape
from memo_llm.config.settings import Settings
from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    ChatResult,
    CloudProviderConfig,
    ProviderType,
    TokenUsage,
)
from memo_llm.providers.llm.base import BaseLLMProvider
from memo_llm.utils.error_mapping import classify_status_error
from memo_llm.utils.errors import (
    ContentBlockedError,
    LLMError,
    MemoLLMError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = structlog.get_logger(logger_name=__name__)


class AnthropicProvider(BaseLLMProvider):
    """LLM provider backed by the Anthropic Claude API."""

    provider_type = ProviderType.ANTHROPIC
    passthrough_options = frozenset({"top_p", "top_k", "stop_sequences"})

    def __init__(self, config: CloudProviderConfig, settings: Settings | None = None) -> None:
        super().__init__(config, settings)
        self._api_key = config.api_key
        # Built by initialize() once the key passed its shape check.
        self._client: anthropic.AsyncAnthropic | None = None

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, api_key: str | None = None) -> bool:
        """Validate the key shape, then confirm it with a one-token request."""
        key = api_key or self._api_key
        self._initialized = False
        check_api_key_shape(self.provider_type, key)

        # Cloud calls are never retried automatically.
        client = anthropic.AsyncAnthropic(api_key=key, max_retries=0)
        try:
            await client.messages.create(
                model=self._model,
                max_tokens=1,
                messages=[{"role": "user", "content": "Hello"}],
            )
        except anthropic.APIError as exc:
            error = self._map_error(exc)
            logger.warning("anthropic_initialize_failed", model=self._model, error=str(error))
            raise error from exc

        self._api_key = key
        self._client = client
        self._initialized = True
        logger.info("provider_initialized", provider=self.get_provider_name(), model=self._model)
        return True

    async def chat(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        options: Mapping[str, Any] | ChatOptions | None = None,
    ) -> ChatResult:
        """Generate a reply via the Anthropic Messages API."""
        self._require_initialized()
        opts = self._chat_options(options)
        system, turns = self._split_system(messages)
        model = opts.model or self._model

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": opts.max_tokens,
            "temperature": opts.temperature,
            "messages": [{"role": m.role, "content": m.content} for m in turns],
            **opts.extras,
        }
        if system:
            # Anthropic takes the system prompt as a separate kwarg, not a message.
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            error = self._map_error(exc)
            logger.warning("anthropic_chat_failed", model=model, error=str(error))
            raise error from exc

        if getattr(response, "stop_reason", None) == "refusal":
            raise ContentBlockedError(
                "Anthropic declined to answer this request",
                provider_name=self.get_provider_name(),
            )

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        usage = response.usage
        input_tokens = getattr(usage, "input_tokens", 0) or 0
        output_tokens = getattr(usage, "output_tokens", 0) or 0
        logger.info(
            "anthropic_chat",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return ChatResult(
            reply="\n".join(text_blocks),
            usage=TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    def calculate_tokens(self, text: str | None) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / 4)

    def is_available(self) -> bool:
        """Return ``True`` once a verified Anthropic key is held."""
        return self._initialized and bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _map_error(self, exc: anthropic.APIError) -> MemoLLMError:
        name = self.get_provider_name()
        # APITimeoutError subclasses APIConnectionError, so it goes first.
        if isinstance(exc, anthropic.APITimeoutError):
            return ProviderTimeoutError(f"Anthropic request timed out: {exc}", name)
        if isinstance(exc, anthropic.APIConnectionError):
            return ProviderUnavailableError(f"Could not reach the Anthropic API: {exc}", name)
        status = getattr(exc, "status_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return classify_status_error(status, message, name, "Anthropic")
