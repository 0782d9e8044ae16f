"""Services built on the provider adapters: factory, configuration and session."""

from memo_llm.services.provider_config import ProviderConfigManager
from memo_llm.services.provider_factory import ProviderFactory
from memo_llm.services.provider_session import ProviderSessionManager

__all__ = ["ProviderConfigManager", "ProviderFactory", "ProviderSessionManager"]
