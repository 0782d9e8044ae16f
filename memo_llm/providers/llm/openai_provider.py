"""OpenAI LLM provider adapter.

Wraps the ``openai`` async client (Chat Completions API) to implement
:class:`ILLMProvider`.  Also works against any OpenAI-compatible gateway
when ``OPENAI_BASE_URL`` is set.

Reasoning models (``o1``, ``o3``, ``o4-mini``, ...) reject ``max_tokens``
and a custom ``temperature``; for them the budget is sent as
``max_completion_tokens`` and temperature is left at the server default.

:meth:`OpenAIProvider.analyze_image` sends a base64 image as an
``image_url`` data-URI content part to the configured vision model.
"""

from __future__ import annotations

import base64
import binascii
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

import openai
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
    normalize_messages,
)
from memo_llm.providers.llm.base import BaseLLMProvider
from memo_llm.utils.error_mapping import classify_status_error
from memo_llm.utils.errors import (
    ConfigurationError,
    ContentBlockedError,
    LLMError,
    MemoLLMError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = structlog.get_logger(logger_name=__name__)

_REASONING_MODEL = re.compile(r"^o\d")

DEFAULT_IMAGE_PROMPT = "Explain what this image is about"
IMAGE_MAX_TOKENS = 1024
SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})


def is_reasoning_model(model: str | None) -> bool:
    return bool(model) and bool(_REASONING_MODEL.match(model))


def normalize_image_media_type(media_type: str | None) -> str:
    """Return an image MIME type the vision endpoint accepts.

    Parameters such as ``; charset=...`` are dropped, ``image/jpg`` becomes
    ``image/jpeg`` and anything unsupported falls back to JPEG.
    """
    if not media_type:
        return "image/jpeg"
    media = media_type.split(";", 1)[0].strip().lower()
    if media == "image/jpg":
        media = "image/jpeg"
    if media not in SUPPORTED_IMAGE_TYPES:
        logger.warning("unsupported_image_media_type", media_type=media, fallback="image/jpeg")
        return "image/jpeg"
    return media


class OpenAIProvider(BaseLLMProvider):
    """LLM provider backed by the OpenAI API."""

    provider_type = ProviderType.OPENAI
    passthrough_options = frozenset(
        {"top_p", "frequency_penalty", "presence_penalty", "stop", "seed", "logit_bias"}
    )
    memo_temperature = 0.3
    memo_json_only = True

    def __init__(self, config: CloudProviderConfig, settings: Settings | None = None) -> None:
        super().__init__(config, settings)
        self._api_key = config.api_key
        self._client: openai.AsyncOpenAI | None = None

    def _build_client(self, api_key: str) -> openai.AsyncOpenAI:
        # Cloud calls are never retried automatically.
        kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        # Optional custom base URL for OpenAI-compatible gateways.
        if self._settings.openai_base_url:
            kwargs["base_url"] = self._settings.openai_base_url
        return openai.AsyncOpenAI(**kwargs)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, api_key: str | None = None) -> bool:
        """Validate the key shape, then list models to confirm the key."""
        key = api_key or self._api_key
        self._initialized = False
        check_api_key_shape(self.provider_type, key)

        client = self._build_client(key)
        try:
            await client.models.list()
        except openai.APIError as exc:
            error = self._map_error(exc)
            logger.warning("openai_initialize_failed", model=self._model, error=str(error))
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
        """Generate a reply via the Chat Completions API."""
        self._require_initialized()
        opts = self._chat_options(options)
        model = opts.model or self._model

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in normalize_messages(messages)],
        }
        if is_reasoning_model(model):
            kwargs["max_completion_tokens"] = opts.max_tokens
        else:
            kwargs["max_tokens"] = opts.max_tokens
            kwargs["temperature"] = opts.temperature
        kwargs.update(opts.extras)

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            error = self._map_error(exc)
            logger.warning("openai_chat_failed", model=model, error=str(error))
            raise error from exc

        return self._to_result(response, model, "openai_chat")

    async def analyze_image(
        self,
        image_base64: str,
        media_type: str | None = None,
        prompt: str = DEFAULT_IMAGE_PROMPT,
    ) -> ChatResult:
        """Describe a base64-encoded image with the configured vision model."""
        self._require_initialized()
        if not image_base64 or not isinstance(image_base64, str):
            raise ConfigurationError(
                "No base64 image data provided", provider_name=self.get_provider_name()
            )
        try:
            base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ConfigurationError(
                "Invalid base64 image data", provider_name=self.get_provider_name()
            ) from exc

        media = normalize_image_media_type(media_type)
        model = self._model
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{media};base64,{image_base64}"},
                        },
                    ],
                }
            ],
        }
        if is_reasoning_model(model):
            kwargs["max_completion_tokens"] = IMAGE_MAX_TOKENS
        else:
            kwargs["max_tokens"] = IMAGE_MAX_TOKENS

        logger.info(
            "openai_image_analysis", model=model, media_type=media, base64_length=len(image_base64)
        )
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            error = self._map_error(exc)
            logger.warning("openai_image_analysis_failed", model=model, error=str(error))
            raise error from exc

        return self._to_result(response, model, "openai_image_analyzed")

    def calculate_tokens(self, text: str | None) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / 4)

    def is_available(self) -> bool:
        return self._initialized and bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _to_result(self, response: Any, model: str | None, event: str) -> ChatResult:
        if not response.choices:
            raise LLMError(
                message="OpenAI returned no choices",
                provider_name=self.get_provider_name(),
            )
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise ContentBlockedError(
                "OpenAI content was blocked by safety filters",
                provider_name=self.get_provider_name(),
            )
        content = choice.message.content
        if not content:
            raise LLMError(
                message="OpenAI returned empty response",
                provider_name=self.get_provider_name(),
            )

        usage = response.usage
        prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
        completion_tokens = getattr(usage, "completion_tokens", 0) or 0
        total_tokens = getattr(usage, "total_tokens", 0) or prompt_tokens + completion_tokens
        logger.info(
            event,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return ChatResult(
            reply=content,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
            ),
        )

    def _map_error(self, exc: openai.APIError) -> MemoLLMError:
        name = self.get_provider_name()
        if isinstance(exc, openai.APITimeoutError):
            return ProviderTimeoutError(f"OpenAI request timed out: {exc}", name)
        if isinstance(exc, openai.APIConnectionError):
            return ProviderUnavailableError(f"Could not reach the OpenAI API: {exc}", name)
        status = getattr(exc, "status_code", None)
        message = getattr(exc, "message", None) or str(exc)
        code = getattr(exc, "code", None)
        if isinstance(code, str) and code not in message:
            message = f"{message} ({code})"
        return classify_status_error(status, message, name, "OpenAI")
