"""Ollama LLM provider adapter.

Talks to a local Ollama daemon over its native HTTP API with ``httpx``:

    GET  /api/tags   installed models (also the liveness probe)
    POST /api/chat   non-streaming chat completion
    POST /api/show   model metadata
    POST /api/pull   download a model

Unlike the cloud adapters, the daemon is expected to come and go (laptop
sleep, service not started yet), so:

    - ``initialize`` never fails; an unreachable daemon is logged and the
      provider still reports ``initialized=True``.  The real error shows up
      on the first ``chat``.
    - transient failures (connection refused, 5xx) are retried with
      exponential backoff.  Timeouts, origin rejections (403) and other 4xx
      responses are returned to the caller immediately.

Setup: install Ollama (https://ollama.ai), ``ollama pull llama3.1``, and
allow the caller's origin with ``OLLAMA_ORIGINS``.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

# httpx is an async HTTP client (like requests but async-native).
import httpx
import structlog

from memo_llm.config.provider_catalog import is_ollama_vision_model
from memo_llm.config.settings import Settings
from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    ChatResult,
    LocalProviderConfig,
    ProviderInfo,
    ProviderType,
    TokenUsage,
    normalize_messages,
)
from memo_llm.providers.llm.base import BaseLLMProvider
from memo_llm.utils.errors import (
    ConfigurationError,
    LLMError,
    MemoLLMError,
    OriginRejectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ResponseParseError,
)
from memo_llm.utils.retry import retry_with_backoff

logger = structlog.get_logger(logger_name=__name__)

ORIGIN_REJECTED_HINT = (
    "Ollama rejected the request origin (HTTP 403).\n\n"
    "To fix this:\n"
    "1. Stop all Ollama processes: pkill ollama\n"
    "2. Allow the origin: OLLAMA_ORIGINS=\"chrome-extension://*\" (note: ORIGINS with S)\n"
    "3. Restart the service: OLLAMA_ORIGINS=\"chrome-extension://*\" ollama serve\n\n"
    "On Windows: set OLLAMA_ORIGINS=chrome-extension://* && ollama serve\n"
    "Less secure alternative: OLLAMA_ORIGINS=\"*\" ollama serve"
)

# Tokens per whitespace-separated word, by model family substring.
_FAMILY_TOKEN_RATIOS: tuple[tuple[str, float], ...] = (
    ("llama", 1.25),
    ("phi", 1.35),
    ("gemma", 1.3),
    ("mistral", 1.2),
    ("qwen", 1.4),
)
_DEFAULT_TOKEN_RATIO = 1.3
_CHARS_PER_TOKEN = 3.5

ProgressCallback = Callable[[dict[str, Any]], None]


def is_retryable(exc: BaseException) -> bool:
    """Connection failures and 5xx responses are transient; nothing else is."""
    if isinstance(exc, (ProviderTimeoutError, OriginRejectedError)):
        return False
    return isinstance(exc, ProviderUnavailableError)


class OllamaProvider(BaseLLMProvider):
    """LLM provider backed by a local Ollama daemon."""

    provider_type = ProviderType.OLLAMA
    passthrough_options = frozenset({"top_p", "top_k", "repeat_penalty", "seed", "num_ctx", "stop"})

    def __init__(
        self,
        config: LocalProviderConfig,
        settings: Settings | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        super().__init__(config, settings)
        # No catalog default: an unset model is filled from discovery.
        self._model = config.model
        self._host = config.host
        self._port = config.port
        self._base_url = config.base_url
        self._available_models: list[str] = list(config.available_models)
        self._service_available = False
        self._max_retries = self._settings.ollama_max_retries
        self._retry_delay = self._settings.ollama_retry_delay
        self._progress_callback = progress_callback
        self._current_operation: str | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def service_available(self) -> bool:
        return self._service_available

    @property
    def available_models(self) -> list[str]:
        return list(self._available_models)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def initialize(self, api_key: str | None = None) -> bool:
        """Probe the daemon and discover models; degrade instead of failing.

        *api_key* is accepted for interface parity and ignored.
        """
        self.report_progress("initialize", "connecting")
        try:
            await self.test_connection()
            await self.load_available_models()
        except MemoLLMError as exc:
            logger.warning(
                "ollama_initialize_degraded",
                base_url=self._base_url,
                error=str(exc),
                hint="If requests are rejected with 403, start Ollama with OLLAMA_ORIGINS set",
            )
        self._initialized = True
        self.report_progress("initialize", "complete", 100)
        logger.info(
            "provider_initialized",
            provider=self.get_provider_name(),
            model=self._model,
            service_available=self._service_available,
            models_count=len(self._available_models),
        )
        return True

    async def chat(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        options: Mapping[str, Any] | ChatOptions | None = None,
    ) -> ChatResult:
        """Generate a reply via ``POST /api/chat`` (non-streaming)."""
        self._require_initialized()
        opts = self._chat_options(options)
        model = opts.model or self._model
        if not model:
            raise ConfigurationError(
                "No model selected for Ollama. Pull a model or choose one in Settings.",
                provider_name=self.get_provider_name(),
            )

        payload = {
            "model": model,
            "messages": [m.model_dump() for m in normalize_messages(messages)],
            "stream": False,
            "options": {
                "temperature": opts.temperature,
                "num_predict": opts.max_tokens,
                **opts.extras,
            },
        }

        self.report_progress("chat", "sending")
        data = await self._with_retry(
            lambda: self._request("/api/chat", self._settings.ollama_chat_timeout, payload),
            "ollama_chat",
        )

        message = data.get("message") if isinstance(data, dict) else None
        reply = message.get("content") if isinstance(message, dict) else None
        if not reply:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )

        prompt_tokens = data.get("prompt_eval_count") or 0
        completion_tokens = data.get("eval_count") or 0
        self.report_progress("chat", "complete", 100)
        logger.info(
            "ollama_chat",
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        return ChatResult(
            reply=reply,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    def calculate_tokens(self, text: str | None) -> int:
        """Estimate tokens from word count, model family and content mix.

        Never below ``ceil(chars / 3.5)``, so a single long "word" (minified
        code, a URL) is not undercounted.
        """
        if not text:
            return 0

        model = (self._model or "").lower()
        ratio = next(
            (value for family, value in _FAMILY_TOKEN_RATIOS if family in model),
            _DEFAULT_TOKEN_RATIO,
        )

        multiplier = 1.0
        if "```" in text or "<code>" in text:
            multiplier += 0.2
        if "http://" in text or "https://" in text:
            multiplier += 0.1
        if not text.isascii():
            multiplier += 0.15

        word_estimate = math.ceil(len(text.split()) * ratio * multiplier)
        char_estimate = math.ceil(len(text) / _CHARS_PER_TOKEN)
        return max(word_estimate, char_estimate)

    def supports_vision(self) -> bool:
        return is_ollama_vision_model(self._model)

    def is_available(self) -> bool:
        return self._initialized and self._service_available

    def get_provider_info(self) -> ProviderInfo:
        info = super().get_provider_info()
        return info.model_copy(
            update={
                "models": tuple(self._available_models),
                "vision_models": tuple(
                    m for m in self._available_models if is_ollama_vision_model(m)
                ),
                "base_url": self._base_url,
            }
        )

    # ------------------------------------------------------------------
    # Ollama-specific operations
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Probe ``GET /api/tags``; sets :attr:`service_available`."""
        try:
            await self._with_retry(
                lambda: self._request("/api/tags", self._settings.ollama_probe_timeout),
                "ollama_test_connection",
            )
        except MemoLLMError:
            self._service_available = False
            raise
        self._service_available = True
        logger.debug("ollama_connection_ok", base_url=self._base_url)
        return True

    async def load_available_models(self) -> list[str]:
        """Refresh :attr:`available_models` and auto-select the first when unset."""
        try:
            data = await self._with_retry(
                lambda: self._request("/api/tags", self._settings.ollama_probe_timeout),
                "ollama_load_models",
            )
        except MemoLLMError:
            self._available_models = []
            raise

        raw_models = data.get("models") if isinstance(data, dict) else None
        names: list[str] = []
        for entry in raw_models or []:
            name = entry.get("name") if isinstance(entry, dict) else entry
            if name:
                names.append(str(name))
        self._available_models = names

        if not self._model and names:
            self._model = names[0]
            logger.info("ollama_model_auto_selected", model=self._model)
        logger.debug("ollama_models_loaded", count=len(names))
        return list(names)

    def get_available_models(self) -> list[str]:
        return list(self._available_models)

    async def get_model_info(self, name: str | None = None) -> dict[str, Any]:
        """Return ``POST /api/show`` metadata for *name* (default: current model)."""
        model = name or self._model
        if not model:
            raise ConfigurationError("No model specified", provider_name=self.get_provider_name())
        return await self._request(
            "/api/show", self._settings.ollama_probe_timeout, {"name": model}
        )

    async def pull_model(self, name: str) -> dict[str, Any]:
        """Download *name* through the daemon (blocks until the pull finishes)."""
        if not name:
            raise ConfigurationError("No model specified", provider_name=self.get_provider_name())
        self.report_progress("pull_model", "downloading", message=name)
        data = await self._request(
            "/api/pull",
            self._settings.ollama_pull_timeout,
            {"name": name, "stream": False},
        )
        if name not in self._available_models:
            self._available_models.append(name)
        self.report_progress("pull_model", "complete", 100, name)
        logger.info("ollama_model_pulled", model=name)
        return data

    def get_service_status(self) -> dict[str, Any]:
        return {
            "available": self._service_available,
            "initialized": self._initialized,
            "host": self._host,
            "port": self._port,
            "base_url": self._base_url,
            "model": self._model,
            "models_count": len(self._available_models),
        }

    def report_progress(
        self,
        operation: str,
        stage: str,
        percentage: int | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        """Log a progress update and forward it to the optional callback."""
        self._current_operation = operation
        progress = {
            "operation": operation,
            "stage": stage,
            "percentage": percentage,
            "message": message,
            "timestamp": int(time.time() * 1000),
        }
        logger.debug("ollama_progress", **progress)
        if self._progress_callback is not None:
            self._progress_callback(progress)
        return progress

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _with_retry(self, fn: Callable[[], Any], operation: str) -> Any:
        try:
            return await retry_with_backoff(
                fn,
                max_attempts=self._max_retries,
                base_delay=self._retry_delay,
                is_retryable=is_retryable,
                operation=operation,
                logger=logger,
            )
        except ProviderUnavailableError:
            self._service_available = False
            raise

    async def _request(
        self,
        path: str,
        timeout: float,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request to the daemon and return the decoded JSON body.

        ``GET`` when *json_body* is ``None``, ``POST`` otherwise.
        """
        name = self.get_provider_name()
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
                if json_body is None:
                    response = await client.get(url)
                else:
                    response = await client.post(url, json=json_body)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(
                f"Ollama service timeout - check if the service is running on {self._base_url}",
                name,
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Ollama service not available at {self._base_url}: {exc}",
                name,
            ) from exc

        status = response.status_code
        if status == 403:
            raise OriginRejectedError(ORIGIN_REJECTED_HINT, name)
        if status >= 500:
            raise ProviderUnavailableError(
                f"Ollama service responded with status {status} for {path}",
                name,
            )
        if status >= 400:
            raise LLMError(f"Ollama request to {path} failed with status {status}", name)

        try:
            return response.json()
        except ValueError as exc:
            raise ResponseParseError(
                f"Invalid JSON from Ollama {path}",
                provider_name=name,
                excerpt=(response.text or "")[:200],
            ) from exc
