"""Persisted provider configuration: CRUD, switching and legacy migration.

Storage layout (JSON values in an :class:`IKeyValueStore`):

    llmProviderConfigs   {providerType: config}  per-provider saved settings
    activeProvider       "anthropic" | ...       currently selected provider
    llmConfig            config                  legacy single-record mirror
    anthropicApiKey      "sk-ant-..."            oldest format, read-only

Two older storage generations are still readable.  The first time the
multi-provider mapping is missing, :meth:`migrate_from_legacy` converts
whichever legacy record exists into the new shape, tags it
``migrated=True`` and points ``activeProvider`` at it.  Legacy keys are
never deleted; ``llmConfig`` keeps being written as a mirror of the active
config so older readers continue to work.

Every write that touches more than one key goes through a single
``store.set`` call, so callers never observe a half-applied update.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, cast

from memo_llm.config.provider_catalog import LEGACY_ANTHROPIC_MODEL, check_api_key_shape
from memo_llm.config.settings import Settings
from memo_llm.interfaces.key_value_store import IKeyValueStore
from memo_llm.models.provider import (
    CloudProviderConfig,
    ConfigStatus,
    ConnectionTestResult,
    LocalProviderConfig,
    ProviderDescriptor,
    ProviderType,
    parse_provider_config,
)
from memo_llm.providers.llm.ollama_provider import OllamaProvider
from memo_llm.services.provider_factory import ProviderFactory
from memo_llm.utils.errors import (
    ConfigurationError,
    MemoLLMError,
    ProviderNotConfiguredError,
    ProviderUnavailableError,
    UnknownProviderTypeError,
)
from memo_llm.utils.logging import get_logger

_logger = get_logger(__name__)

KEY_PROVIDER_CONFIGS = "llmProviderConfigs"
KEY_ACTIVE_PROVIDER = "activeProvider"
KEY_LEGACY_CONFIG = "llmConfig"
KEY_LEGACY_API_KEY = "anthropicApiKey"

EXPORT_VERSION = "1.0.0"
REDACTED = "[REDACTED]"

AnyProviderConfig = CloudProviderConfig | LocalProviderConfig


def _now_ms() -> int:
    return int(time.time() * 1000)


def _legacy_record(raw: Any) -> dict[str, Any] | None:
    """Normalize a legacy ``llmConfig`` value; a missing type means Anthropic."""
    if not isinstance(raw, Mapping) or not raw:
        return None
    record = dict(raw)
    if not record.get("type"):
        record["type"] = ProviderType.ANTHROPIC.value
    return record


class ProviderConfigManager:
    """Reads and writes provider configuration in the key/value store.

    Parameters
    ----------
    store:
        Backend holding the configuration keys.
    factory:
        Used for validation, default configs and connection tests.
    """

    def __init__(
        self,
        store: IKeyValueStore,
        factory: ProviderFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or Settings()
        self._factory = factory or ProviderFactory(self._settings)

    @property
    def factory(self) -> ProviderFactory:
        return self._factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read_mapping(self) -> dict[str, Any]:
        data = await self._store.get([KEY_PROVIDER_CONFIGS])
        mapping = data.get(KEY_PROVIDER_CONFIGS)
        return dict(mapping) if isinstance(mapping, Mapping) else {}

    async def get_current_config(self) -> AnyProviderConfig | None:
        """Return the active configuration, whichever storage generation holds it.

        Raises ``UnknownProviderTypeError`` if the stored record names a
        provider type that is no longer supported.
        """
        data = await self._store.get([KEY_PROVIDER_CONFIGS, KEY_ACTIVE_PROVIDER, KEY_LEGACY_CONFIG])
        mapping = data.get(KEY_PROVIDER_CONFIGS)
        active = data.get(KEY_ACTIVE_PROVIDER)
        if isinstance(mapping, Mapping) and active and active in mapping:
            return parse_provider_config(mapping[active])

        legacy = _legacy_record(data.get(KEY_LEGACY_CONFIG))
        if legacy is not None:
            return parse_provider_config(legacy)
        return None

    async def get_provider_config(self, provider_type: ProviderType | str) -> AnyProviderConfig | None:
        """Return the saved configuration for *provider_type*, active or not."""
        ptype = ProviderType.coerce(provider_type)
        mapping = await self._read_mapping()
        if ptype.value in mapping:
            return parse_provider_config(mapping[ptype.value])
        if not mapping:
            current = await self.get_current_config()
            if current is not None and current.provider_type is ptype:
                return current
        return None

    async def get_saved_configs(self) -> dict[ProviderType, AnyProviderConfig]:
        mapping = await self._read_mapping()
        return {
            ProviderType.coerce(key): parse_provider_config(value)
            for key, value in mapping.items()
        }

    async def get_active_provider_type(self) -> ProviderType | None:
        config = await self.get_current_config()
        return config.provider_type if config is not None else None

    @staticmethod
    def get_available_providers() -> list[ProviderDescriptor]:
        return ProviderFactory.get_available_providers()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_config(self, config: AnyProviderConfig | Mapping[str, Any] | None) -> bool:
        """Non-raising validity check (type known, key shape, model, host/port)."""
        if config is None:
            return False
        try:
            parsed = parse_provider_config(config)
            return self._factory.validate_config(parsed.provider_type, parsed)
        except ConfigurationError:
            return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_config(self, config: AnyProviderConfig | Mapping[str, Any]) -> AnyProviderConfig:
        """Validate, timestamp and persist *config* as the active provider.

        The mapping entry, the active pointer and the legacy mirror are
        written in one ``store.set`` call.

        Raises
        ------
        ConfigurationError
            If *config* is invalid.
        StorageError
            If the store rejects the write.
        """
        parsed = parse_provider_config(config)
        ptype = parsed.provider_type
        self._factory.validate_config(ptype, parsed)

        await self._migrate_before_write()
        stamped = parsed.model_copy(update={"last_updated": _now_ms()})
        stored = stamped.to_storage()
        mapping = await self._read_mapping()
        mapping[ptype.value] = stored

        await self._store.set(
            {
                KEY_PROVIDER_CONFIGS: mapping,
                KEY_ACTIVE_PROVIDER: ptype.value,
                KEY_LEGACY_CONFIG: stored,
            }
        )
        _logger.info(
            "provider_config_saved",
            provider=ptype.value,
            model=stamped.model,
            has_api_key=bool(getattr(stamped, "api_key", "")),
        )
        return stamped

    async def switch_provider(
        self,
        provider_type: ProviderType | str,
        api_key: str | None = None,
    ) -> AnyProviderConfig:
        """Make *provider_type* active, reusing its saved configuration if any.

        Without a saved configuration a default is synthesized from the
        catalog (first model; Ollama gets the default host/port/model).
        Other providers' saved entries are never touched.
        """
        ptype = ProviderType.coerce(provider_type)
        if api_key:
            check_api_key_shape(ptype, api_key)

        await self._migrate_before_write()
        mapping = await self._read_mapping()
        saved = mapping.get(ptype.value)

        changed = False
        if saved is not None:
            config = parse_provider_config(saved)
            if api_key and isinstance(config, CloudProviderConfig) and config.api_key != api_key:
                config = config.model_copy(update={"api_key": api_key, "last_updated": _now_ms()})
                changed = True
        else:
            config = self._factory.default_config(ptype)
            if api_key and isinstance(config, CloudProviderConfig):
                config = config.model_copy(update={"api_key": api_key})
            config = config.model_copy(update={"last_updated": _now_ms()})
            changed = True

        items: dict[str, Any] = {
            KEY_ACTIVE_PROVIDER: ptype.value,
            KEY_LEGACY_CONFIG: config.to_storage(),
        }
        if changed:
            mapping[ptype.value] = config.to_storage()
            items[KEY_PROVIDER_CONFIGS] = mapping
        await self._store.set(items)

        _logger.info("provider_switched", provider=ptype.value, model=config.model, created=saved is None)
        return config

    async def _require_current(self) -> AnyProviderConfig:
        config = await self.get_current_config()
        if config is None:
            raise ProviderNotConfiguredError("No configuration found")
        return config

    async def update_api_key(self, api_key: str) -> AnyProviderConfig:
        config = await self._require_current()
        if not isinstance(config, CloudProviderConfig):
            raise ConfigurationError(
                "The active provider does not use an API key",
                provider_name=config.provider_type.value,
            )
        return await self.set_config(config.model_copy(update={"api_key": api_key}))

    async def update_model(self, model: str) -> AnyProviderConfig:
        config = await self._require_current()
        return await self.set_config(config.model_copy(update={"model": model}))

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def is_configured(self) -> bool:
        try:
            config = await self.get_current_config()
        except MemoLLMError:
            return False
        return self.validate_config(config)

    async def get_config_status(self) -> ConfigStatus:
        try:
            config = await self.get_current_config()
        except MemoLLMError as exc:
            return ConfigStatus(error=exc.message)
        if config is None:
            return ConfigStatus()
        return ConfigStatus(
            configured=self.validate_config(config),
            provider=config.provider_type.value,
            model=config.model,
            has_api_key=bool(getattr(config, "api_key", "")),
            last_updated=config.last_updated,
            migrated=config.migrated,
        )

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    async def export_config(self) -> dict[str, Any]:
        """Return the active configuration for sharing, with the API key redacted."""
        config = await self.get_current_config()
        if config is None:
            raise ProviderNotConfiguredError("No configuration to export")
        exported = config.to_storage()
        if "apiKey" in exported:
            exported["apiKey"] = REDACTED
        return {
            "version": EXPORT_VERSION,
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "config": exported,
        }

    async def import_config(self, import_data: Mapping[str, Any], api_key: str | None = None) -> AnyProviderConfig:
        """Persist a configuration produced by :meth:`export_config`.

        Exports never carry a real key, so cloud providers need *api_key*.
        """
        if not isinstance(import_data, Mapping) or not isinstance(import_data.get("config"), Mapping):
            raise ConfigurationError("Invalid import data")
        record = dict(import_data["config"])
        record.pop("lastUpdated", None)
        if api_key is not None:
            record["apiKey"] = api_key
        elif record.get("apiKey") == REDACTED:
            record.pop("apiKey")
        if not self.validate_config(record):
            raise ConfigurationError("Invalid configuration in import data")
        return await self.set_config(record)

    # ------------------------------------------------------------------
    # Connection tests (no persisted state is written)
    # ------------------------------------------------------------------

    async def test_provider_connection(
        self, config: AnyProviderConfig | Mapping[str, Any]
    ) -> ConnectionTestResult:
        """Initialize a throwaway provider for *config* and report the outcome."""
        try:
            parsed = parse_provider_config(config)
            provider = self._factory.create_provider(parsed.provider_type, parsed)
            await provider.initialize()
        except MemoLLMError as exc:
            _logger.info("provider_connection_test_failed", error=exc.message)
            return ConnectionTestResult(success=False, message=exc.message)

        if isinstance(provider, OllamaProvider):
            if not provider.service_available:
                return ConnectionTestResult(
                    success=False,
                    message=f"Ollama service not reachable at {provider.base_url}",
                )
            return ConnectionTestResult(
                success=True,
                message=f"Connected to Ollama ({len(provider.available_models)} models)",
                models=tuple(provider.available_models),
            )
        return ConnectionTestResult(success=True, message="Connection successful")

    # ------------------------------------------------------------------
    # Ollama extensions
    # ------------------------------------------------------------------

    async def get_ollama_config(self) -> LocalProviderConfig | None:
        config = await self.get_provider_config(ProviderType.OLLAMA)
        return config if isinstance(config, LocalProviderConfig) else None

    async def save_ollama_config(
        self,
        host: str,
        port: int,
        model: str | None,
        available_models: list[str] | tuple[str, ...] | None = None,
    ) -> LocalProviderConfig:
        """Persist the Ollama settings (including discovered models) and activate Ollama."""
        config = LocalProviderConfig(
            host=host,
            port=port,
            model=model or None,
            available_models=tuple(available_models or ()),
        )
        # set_config returns the parsed input, so the type is preserved.
        return cast(LocalProviderConfig, await self.set_config(config))

    def _ollama_probe(self, host: str, port: int) -> OllamaProvider:
        config = LocalProviderConfig(host=host, port=port)
        self._factory.validate_config(ProviderType.OLLAMA, config)
        provider = self._factory.create_provider(ProviderType.OLLAMA, config)
        if not isinstance(provider, OllamaProvider):
            raise ConfigurationError(
                f"Factory built {type(provider).__name__} for an Ollama config",
                provider_name=ProviderType.OLLAMA.value,
            )
        return provider

    async def test_ollama_connection(self, host: str, port: int) -> ConnectionTestResult:
        """Probe a daemon at *host*:*port* and report the models it serves."""
        try:
            provider = self._ollama_probe(host, port)
            await provider.test_connection()
            models = await provider.load_available_models()
        except MemoLLMError as exc:
            _logger.info("ollama_connection_test_failed", host=host, port=port, error=exc.message)
            return ConnectionTestResult(success=False, message=exc.message)
        return ConnectionTestResult(
            success=True,
            message=f"Connected to Ollama at {provider.base_url} ({len(models)} models)",
            models=tuple(models),
        )

    async def get_available_ollama_models(
        self,
        host: str | None = None,
        port: int | None = None,
    ) -> list[str]:
        """List models on a daemon; defaults to the saved (or default) host/port.

        Raises
        ------
        ProviderUnavailableError
            If the daemon cannot be reached.
        """
        saved = await self.get_ollama_config()
        resolved_host = host or (saved.host if saved else self._settings.ollama_default_host)
        resolved_port = port or (saved.port if saved else self._settings.ollama_default_port)
        provider = self._ollama_probe(resolved_host, resolved_port)
        try:
            return await provider.load_available_models()
        except ProviderUnavailableError:
            _logger.warning("ollama_models_unavailable", host=resolved_host, port=resolved_port)
            raise

    # ------------------------------------------------------------------
    # Legacy migration
    # ------------------------------------------------------------------

    async def _migrate_before_write(self) -> None:
        # A legacy record naming a removed provider must not block new saves;
        # the write that follows supersedes it.
        try:
            await self.migrate_from_legacy()
        except UnknownProviderTypeError as exc:
            _logger.warning("config_migration_skipped", legacy_type=exc.provider_type)

    async def migrate_from_legacy(self) -> bool:
        """Convert legacy records into the multi-provider mapping, once.

        Returns ``True`` when a migration was written; ``False`` when the
        mapping already exists or there is nothing to migrate.
        """
        data = await self._store.get([KEY_PROVIDER_CONFIGS, KEY_LEGACY_CONFIG, KEY_LEGACY_API_KEY])
        if KEY_PROVIDER_CONFIGS in data:
            return False

        record = _legacy_record(data.get(KEY_LEGACY_CONFIG))
        source = KEY_LEGACY_CONFIG
        if record is None:
            legacy_key = data.get(KEY_LEGACY_API_KEY)
            if not legacy_key or not isinstance(legacy_key, str):
                return False
            record = {
                "type": ProviderType.ANTHROPIC.value,
                "apiKey": legacy_key,
                "model": LEGACY_ANTHROPIC_MODEL,
            }
            source = KEY_LEGACY_API_KEY

        record["migrated"] = True
        record.setdefault("lastUpdated", _now_ms())
        config = parse_provider_config(record)
        stored = config.to_storage()
        ptype = config.provider_type.value

        await self._store.set(
            {
                KEY_PROVIDER_CONFIGS: {ptype: stored},
                KEY_ACTIVE_PROVIDER: ptype,
                KEY_LEGACY_CONFIG: stored,
            }
        )
        _logger.info("config_migrated", provider=ptype, source=source)
        return True
