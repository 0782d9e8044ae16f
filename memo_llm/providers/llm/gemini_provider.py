"""Google Gemini LLM provider adapter.

Wraps the ``google-genai`` SDK (``genai.Client(...).aio``) to implement
:class:`ILLMProvider`.

Key differences from the other cloud adapters:
    - Conversation roles are ``user`` / ``model``; ``assistant`` turns are
      renamed and system turns become ``system_instruction``
    - Every request carries safety settings (medium-and-above blocking for
      the four harm categories unless the caller passes its own)
    - A blocked prompt or a ``SAFETY`` finish reason yields no text; both
      surface as :class:`ContentBlockedError` rather than an empty reply
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

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

_SAFETY_CATEGORIES = (
    genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


def default_safety_settings() -> list[genai_types.SafetySetting]:
    return [
        genai_types.SafetySetting(
            category=category,
            threshold=genai_types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
        )
        for category in _SAFETY_CATEGORIES
    ]


def _enum_name(value: Any) -> str:
    if value is None:
        return ""
    return getattr(value, "name", None) or str(value)


class GeminiProvider(BaseLLMProvider):
    """LLM provider backed by the Google Gemini API."""

    provider_type = ProviderType.GEMINI
    passthrough_options = frozenset({"top_p", "top_k", "stop_sequences", "safety_settings"})
    memo_temperature = 0.3
    memo_json_only = True

    def __init__(self, config: CloudProviderConfig, settings: Settings | None = None) -> None:
        super().__init__(config, settings)
        self._api_key = config.api_key
        self._client: genai.Client | None = None

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, api_key: str | None = None) -> bool:
        """Validate the key shape, then fetch the configured model's metadata."""
        key = api_key or self._api_key
        self._initialized = False
        check_api_key_shape(self.provider_type, key)

        client = genai.Client(api_key=key)
        try:
            await client.aio.models.get(model=self._model)
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            error = self._map_error(exc)
            logger.warning("gemini_initialize_failed", model=self._model, error=str(error))
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
        """Generate a reply via ``models.generate_content``."""
        self._require_initialized()
        opts = self._chat_options(options)
        system, turns = self._split_system(messages)
        model = opts.model or self._model

        contents = [
            genai_types.Content(
                role="model" if m.role == "assistant" else "user",
                parts=[genai_types.Part(text=m.content)],
            )
            for m in turns
        ]
        extras = dict(opts.extras)
        safety_settings = extras.pop("safety_settings", None) or default_safety_settings()
        config = genai_types.GenerateContentConfig(
            system_instruction=system or None,
            temperature=opts.temperature,
            max_output_tokens=opts.max_tokens,
            safety_settings=safety_settings,
            **extras,
        )

        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            error = self._map_error(exc)
            logger.warning("gemini_chat_failed", model=model, error=str(error))
            raise error from exc

        reply = self._extract_text(response)
        usage = getattr(response, "usage_metadata", None)
        prompt_tokens = getattr(usage, "prompt_token_count", 0) or 0
        completion_tokens = getattr(usage, "candidates_token_count", 0) or 0
        total_tokens = getattr(usage, "total_token_count", 0) or prompt_tokens + completion_tokens
        logger.info(
            "gemini_chat",
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return ChatResult(
            reply=reply,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
            ),
        )

    def calculate_tokens(self, text: str | None) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / 4)

    def is_available(self) -> bool:
        return self._initialized and bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _extract_text(self, response: Any) -> str:
        name = self.get_provider_name()
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None) if feedback is not None else None
        if block_reason:
            raise ContentBlockedError(
                f"Gemini prompt was blocked by safety filters ({_enum_name(block_reason)})",
                provider_name=name,
            )

        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise LLMError("Gemini returned no candidates", provider_name=name)

        candidate = candidates[0]
        finish_reason = _enum_name(getattr(candidate, "finish_reason", None))
        if finish_reason == "SAFETY":
            raise ContentBlockedError(
                "Gemini response was blocked by safety filters",
                provider_name=name,
            )

        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        text = "".join(part.text for part in parts if getattr(part, "text", None))
        if not text:
            raise LLMError(
                f"Gemini returned an empty response (finish reason: {finish_reason or 'unknown'})",
                provider_name=name,
            )
        return text

    def _map_error(self, exc: Exception) -> MemoLLMError:
        name = self.get_provider_name()
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeoutError(f"Gemini request timed out: {exc}", name)
        if isinstance(exc, httpx.HTTPError):
            return ProviderUnavailableError(f"Could not reach the Gemini API: {exc}", name)
        status = getattr(exc, "code", None)
        message = getattr(exc, "message", None) or str(exc)
        api_status = getattr(exc, "status", None)
        if api_status and api_status not in message:
            message = f"{message} ({api_status})"
        return classify_status_error(status, message, name, "Gemini")
