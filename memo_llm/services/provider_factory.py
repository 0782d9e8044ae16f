"""Provider construction and pre-flight validation.

The factory is the only place that maps a :class:`ProviderType` to an
adapter class.  It also owns :meth:`ProviderFactory.validate_config`, the
pure (no I/O) check the configuration manager runs before persisting
anything the user typed into the settings form.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from memo_llm.config.provider_catalog import (
    OLLAMA_DEFAULT_HOST,
    OLLAMA_DEFAULT_PORT,
    OLLAMA_VISION_FAMILIES,
    PROVIDER_CATALOG,
    check_api_key_shape,
    get_descriptor,
    is_ollama_vision_model,
)
from memo_llm.config.settings import Settings
from memo_llm.models.provider import (
    CloudProviderConfig,
    LocalProviderConfig,
    ProviderDescriptor,
    ProviderType,
    parse_provider_config,
)
from memo_llm.providers.llm.anthropic_provider import AnthropicProvider
from memo_llm.providers.llm.base import BaseLLMProvider
from memo_llm.providers.llm.gemini_provider import GeminiProvider
from memo_llm.providers.llm.ollama_provider import OllamaProvider
from memo_llm.providers.llm.openai_provider import OpenAIProvider
from memo_llm.utils.errors import ConfigurationError
from memo_llm.utils.logging import get_logger

_logger = get_logger(__name__)

_PROVIDER_CLASSES: dict[ProviderType, type[BaseLLMProvider]] = {
    ProviderType.ANTHROPIC: AnthropicProvider,
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.OLLAMA: OllamaProvider,
}

_LOCALHOST = re.compile(r"^(localhost|127\.0\.0\.1|::1)$")
_IPV4 = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
_HOSTNAME = re.compile(r"^[a-zA-Z0-9.-]+$")


def is_valid_host(host: str) -> bool:
    """Accept localhost aliases, dotted IPv4 addresses and plain hostnames."""
    if not host:
        return False
    if _IPV4.match(host):
        return all(0 <= int(octet) <= 255 for octet in host.split("."))
    return bool(_LOCALHOST.match(host) or _HOSTNAME.match(host))


ProviderConfigInput = CloudProviderConfig | LocalProviderConfig | Mapping[str, Any]


class ProviderFactory:
    """Builds provider adapters from configuration.

    Parameters
    ----------
    settings:
        Process settings handed to every adapter (timeouts, retry policy,
        OpenAI base URL).
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _coerce_config(
        self,
        provider_type: ProviderType,
        config: ProviderConfigInput | None,
    ) -> CloudProviderConfig | LocalProviderConfig:
        if config is None:
            config = {}
        if isinstance(config, Mapping):
            data = dict(config)
            data.setdefault("type", provider_type.value)
            config = parse_provider_config(data)
        if config.provider_type is not provider_type:
            raise ConfigurationError(
                f"Configuration is for '{config.provider_type.value}', "
                f"not '{provider_type.value}'",
                provider_name=provider_type.value,
            )
        return config

    def create_provider(
        self,
        provider_type: ProviderType | str,
        config: ProviderConfigInput | None = None,
    ) -> BaseLLMProvider:
        """Return an uninitialized adapter for *provider_type*.

        Raises
        ------
        UnknownProviderTypeError
            If *provider_type* is not in the catalog.
        ConfigurationError
            If *config* cannot be parsed for that provider type.
        """
        ptype = ProviderType.coerce(provider_type)
        parsed = self._coerce_config(ptype, config)
        provider_cls = _PROVIDER_CLASSES[ptype]
        _logger.debug("provider_created", provider=ptype.value, model=parsed.model)
        return provider_cls(parsed, self._settings)

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    @staticmethod
    def get_available_providers() -> list[ProviderDescriptor]:
        return list(PROVIDER_CATALOG)

    @staticmethod
    def get_provider_descriptor(provider_type: ProviderType | str) -> ProviderDescriptor:
        return get_descriptor(provider_type)

    @staticmethod
    def has_vision_capability(provider_type: ProviderType | str, model: str | None) -> bool:
        ptype = ProviderType.coerce(provider_type)
        if ptype is ProviderType.OLLAMA:
            return is_ollama_vision_model(model)
        return bool(model) and model in get_descriptor(ptype).vision_models

    @staticmethod
    def get_vision_models() -> dict[str, tuple[str, ...]]:
        """Vision-capable models per provider id.

        Ollama lists model families, since its models are discovered at runtime.
        """
        result = {d.id.value: d.vision_models for d in PROVIDER_CATALOG if d.vision_models}
        result[ProviderType.OLLAMA.value] = OLLAMA_VISION_FAMILIES
        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_config(
        self,
        provider_type: ProviderType | str,
        config: ProviderConfigInput | None,
    ) -> bool:
        """Check *config* for *provider_type* without any network I/O.

        Returns ``True`` when valid.

        Raises
        ------
        UnknownProviderTypeError
            If *provider_type* is not in the catalog.
        ConfigurationError
            On a missing/malformed API key, a model outside the catalog, or
            an invalid Ollama host/port.
        """
        ptype = ProviderType.coerce(provider_type)
        parsed = self._coerce_config(ptype, config)
        descriptor = get_descriptor(ptype)

        if isinstance(parsed, CloudProviderConfig):
            check_api_key_shape(ptype, parsed.api_key)
        else:
            self._validate_local(parsed)

        if parsed.model and descriptor.models and parsed.model not in descriptor.models:
            raise ConfigurationError(
                f"Model '{parsed.model}' is not available for {descriptor.name}",
                provider_name=ptype.value,
            )
        return True

    @staticmethod
    def _validate_local(config: LocalProviderConfig) -> None:
        if not is_valid_host(config.host):
            raise ConfigurationError(
                f"Invalid host configuration: '{config.host}'",
                provider_name=ProviderType.OLLAMA.value,
            )
        if not 1 <= config.port <= 65535:
            raise ConfigurationError(
                "Invalid port configuration - must be between 1 and 65535",
                provider_name=ProviderType.OLLAMA.value,
            )

    def default_config(
        self, provider_type: ProviderType | str
    ) -> CloudProviderConfig | LocalProviderConfig:
        """Starting configuration for a provider the user has not saved yet.

        Cloud providers get the catalog's first model and no key; Ollama gets
        the host/port defaults from settings and the catalog model unless
        ``OLLAMA_DEFAULT_MODEL`` overrides it.
        """
        ptype = ProviderType.coerce(provider_type)
        descriptor = get_descriptor(ptype)
        if ptype is ProviderType.OLLAMA:
            return LocalProviderConfig(
                host=self._settings.ollama_default_host or OLLAMA_DEFAULT_HOST,
                port=self._settings.ollama_default_port or OLLAMA_DEFAULT_PORT,
                model=self._settings.ollama_default_model or descriptor.default_model,
            )
        return CloudProviderConfig(
            type=ptype.value,
            model=descriptor.models[0] if descriptor.models else descriptor.default_model,
        )
