"""Abstract base class for LLM providers.

Defines the one contract every backend satisfies, whether it is a metered
cloud API (Anthropic, OpenAI, Gemini) or a local daemon (Ollama).  Callers
(the session manager, the config manager's connection tests) only ever see
this interface; vendor request and response shapes stay inside the
adapters under ``memo_llm/providers/llm/``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    ChatResult,
    MemoResult,
    ProviderInfo,
)


# Concrete implementations: AnthropicProvider, OpenAIProvider, GeminiProvider,
# OllamaProvider.  Located in: memo_llm/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM backends used for memo processing and tag chat.

    Lifecycle: construct from a provider configuration, then
    :meth:`initialize`.  Cloud providers refuse to become initialized when
    their credential is rejected; the local provider initializes even when
    its daemon is down and reports the outage on first use.
    """

    @property
    @abstractmethod
    def initialized(self) -> bool:
        """``True`` once :meth:`initialize` has completed successfully."""

    @abstractmethod
    async def initialize(self, api_key: str | None = None) -> bool:
        """Prepare the provider for use.

        Parameters
        ----------
        api_key:
            Overrides the key from the provider's configuration.  Ignored by
            providers that need no key.

        Returns
        -------
        bool
            ``True`` on success.

        Raises
        ------
        memo_llm.utils.errors.ConfigurationError
            Key missing or malformed (raised before any network call).
        memo_llm.utils.errors.AuthenticationError
            The remote service rejected the key.
        """

    @abstractmethod
    async def chat(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        options: Mapping[str, Any] | ChatOptions | None = None,
    ) -> ChatResult:
        """Send a conversation and return the normalized reply.

        Raises
        ------
        memo_llm.utils.errors.NotInitializedError
            If called before :meth:`initialize` succeeded.
        memo_llm.utils.errors.LLMError
            If the backend call fails or returns no usable text.
        """

    @abstractmethod
    async def process_memo(
        self,
        content: str,
        url: str | None = None,
        tags: Iterable[Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> MemoResult:
        """Turn captured page content into structured memo fields.

        Raises
        ------
        memo_llm.utils.errors.ResponseParseError
            If no JSON object can be recovered from the model reply.
        """

    @abstractmethod
    def calculate_tokens(self, text: str | None) -> int:
        """Estimate the token count of *text* (0 for empty input)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the catalog id of this provider, e.g. ``"openai"``."""

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if the configured model accepts image input."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and believed reachable.

        Never performs network I/O.
        """

    @abstractmethod
    def get_provider_info(self) -> ProviderInfo:
        """Return descriptor metadata merged with the live instance state."""
