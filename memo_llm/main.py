"""memo-llm composition root.

Wires the key/value store, provider factory, configuration manager and
session manager together.  Extension surfaces (background worker, side
panel handlers) call :func:`create_session_manager` once per process and
use the returned manager for every memo and chat request; the manager
rehydrates the active provider from storage on its own.
"""

from __future__ import annotations

from typing import Any

import structlog

from memo_llm.config.settings import Settings
from memo_llm.interfaces.key_value_store import IKeyValueStore
from memo_llm.providers.storage.sqlite_store import SQLiteKeyValueStore
from memo_llm.services.provider_config import ProviderConfigManager
from memo_llm.services.provider_factory import ProviderFactory
from memo_llm.services.provider_session import ProviderSessionManager
from memo_llm.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


def build_components(
    custom_settings: Settings | None = None,
    store: IKeyValueStore | None = None,
) -> dict[str, Any]:
    """Construct every memo-llm component with injected dependencies.

    Parameters
    ----------
    custom_settings:
        Process settings.  Uses module-level ``settings`` if not provided.
    store:
        Key/value backend.  Defaults to SQLite at ``settings.storage_db_path``.

    Returns
    -------
    dict
        ``settings``, ``store``, ``factory``, ``config_manager`` and
        ``session_manager``.
    """
    s = custom_settings or settings
    kv_store = store or SQLiteKeyValueStore(s.storage_db_path)
    factory = ProviderFactory(s)
    config_manager = ProviderConfigManager(kv_store, factory=factory, settings=s)
    session_manager = ProviderSessionManager(config_manager, factory=factory)

    _logger.info(
        "components_built",
        store=type(kv_store).__name__,
        providers=[d.id.value for d in factory.get_available_providers()],
    )
    return {
        "settings": s,
        "store": kv_store,
        "factory": factory,
        "config_manager": config_manager,
        "session_manager": session_manager,
    }


def create_session_manager(
    custom_settings: Settings | None = None,
    store: IKeyValueStore | None = None,
) -> ProviderSessionManager:
    """Shortcut for ``build_components(...)["session_manager"]``."""
    return build_components(custom_settings, store)["session_manager"]
