"""Session-scoped access to the active LLM provider.

The host process (a browser background worker, a short-lived request
handler) can be torn down between any two calls, so the session manager
never trusts its in-memory provider.  Every public operation goes through
:meth:`ProviderSessionManager.ensure_provider`, which rebuilds and
re-initializes the provider from persisted configuration whenever none is
held or the held one is not initialized.  No reconnect step is needed
after a restart.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from memo_llm.config.provider_catalog import get_descriptor
from memo_llm.interfaces.llm_provider import ILLMProvider
from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    ChatResult,
    CloudProviderConfig,
    LocalProviderConfig,
    MemoResult,
    ProviderInfo,
    parse_provider_config,
)
from memo_llm.services.provider_config import ProviderConfigManager
from memo_llm.services.provider_factory import ProviderFactory
from memo_llm.utils.errors import ProviderNotConfiguredError
from memo_llm.utils.logging import get_logger

_logger = get_logger(__name__)


class ProviderSessionManager:
    """Holds at most one live provider and rehydrates it on demand."""

    def __init__(
        self,
        config_manager: ProviderConfigManager,
        factory: ProviderFactory | None = None,
    ) -> None:
        self._config_manager = config_manager
        self._factory = factory or config_manager.factory
        self._provider: ILLMProvider | None = None

    @property
    def provider(self) -> ILLMProvider | None:
        return self._provider

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize_provider(
        self, config: CloudProviderConfig | LocalProviderConfig | Mapping[str, Any]
    ) -> ILLMProvider:
        """Build and initialize a provider for *config* without persisting it.

        Cloud initialization errors propagate and leave the previously held
        provider in place.
        """
        parsed = parse_provider_config(config)
        provider = self._factory.create_provider(parsed.provider_type, parsed)
        await provider.initialize()
        self._provider = provider
        _logger.info("provider_activated", provider=provider.get_provider_name())
        return provider

    async def configure(
        self, config: CloudProviderConfig | LocalProviderConfig | Mapping[str, Any]
    ) -> ILLMProvider:
        """Persist *config* as the active configuration, then activate it."""
        saved = await self._config_manager.set_config(config)
        self._provider = None
        return await self.initialize_provider(saved)

    async def ensure_provider(self) -> ILLMProvider:
        """Return an initialized provider, rehydrating from storage if needed.

        Raises
        ------
        ProviderNotConfiguredError
            If no configuration is persisted.
        """
        if self._provider is not None and self._provider.initialized:
            return self._provider

        await self._config_manager.migrate_from_legacy()
        config = await self._config_manager.get_current_config()
        if config is None:
            raise ProviderNotConfiguredError()

        _logger.info("provider_rehydrating", provider=config.provider_type.value, model=config.model)
        provider = await self.initialize_provider(config)
        _logger.info("provider_rehydrated", provider=provider.get_provider_name())
        return provider

    def release(self) -> None:
        """Drop the in-memory provider, as a host teardown would."""
        self._provider = None

    def is_initialized(self) -> bool:
        return self._provider is not None and self._provider.initialized

    # ------------------------------------------------------------------
    # Operations used by the extension surfaces
    # ------------------------------------------------------------------

    async def process_memo(
        self,
        content: str,
        url: str | None = None,
        tags: Iterable[Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> MemoResult:
        provider = await self.ensure_provider()
        return await provider.process_memo(content, url=url, tags=tags, options=options)

    async def chat(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        options: Mapping[str, Any] | ChatOptions | None = None,
    ) -> ChatResult:
        provider = await self.ensure_provider()
        return await provider.chat(messages, options)

    async def get_provider_info(self) -> ProviderInfo | None:
        """Describe the held provider, or the persisted active one without connecting."""
        if self._provider is not None:
            return self._provider.get_provider_info()

        config = await self._config_manager.get_current_config()
        if config is None:
            return None
        descriptor = get_descriptor(config.provider_type)
        model = config.model or descriptor.default_model
        return ProviderInfo(
            id=descriptor.id,
            name=descriptor.name,
            description=descriptor.description,
            requires_api_key=descriptor.requires_api_key,
            is_local=descriptor.is_local,
            model=model,
            models=descriptor.models or getattr(config, "available_models", ()),
            vision_models=descriptor.vision_models,
            supports_vision=self._factory.has_vision_capability(config.provider_type, model),
            initialized=False,
            base_url=getattr(config, "base_url", None),
        )

