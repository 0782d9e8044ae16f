"""Configuration module: Settings, the provider catalog, and a module-level settings instance."""

from memo_llm.config.provider_catalog import (
    PROVIDER_CATALOG,
    check_api_key_shape,
    get_descriptor,
)
from memo_llm.config.settings import Settings

settings = Settings()

__all__ = ["PROVIDER_CATALOG", "Settings", "check_api_key_shape", "get_descriptor", "settings"]
