"""Process-level settings loaded from environment variables via pydantic-settings.

These are the knobs that belong to the host process, not to the user:
where the key/value store lives, log level, and the defaults/timeouts used
when talking to a local Ollama daemon.  The user's provider choice and API
keys live in the persisted key/value store and are owned by
:class:`memo_llm.services.provider_config.ProviderConfigManager`.

Field names map to upper-cased environment variables, e.g.
``ollama_chat_timeout`` <- ``OLLAMA_CHAT_TIMEOUT``.  A ``.env`` file in the
working directory is read when present.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """memo-llm settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Persistence ===
    storage_db_path: str = "data/memo_store.db"

    # === Cloud providers ===
    # Custom base URL for OpenAI-compatible gateways; empty = api.openai.com.
    openai_base_url: str = ""

    # === Local Ollama daemon ===
    ollama_default_host: str = "localhost"
    ollama_default_port: int = 11434
    # Empty means the catalog default for Ollama (provider_catalog.OLLAMA).
    ollama_default_model: str = ""
    # Seconds.  Probes (/api/tags, /api/show) must be short so a missing
    # daemon does not stall initialization; generation can be slow on CPU.
    ollama_probe_timeout: float = 10.0
    ollama_chat_timeout: float = 120.0
    ollama_pull_timeout: float = 600.0
    ollama_max_retries: int = 3
    ollama_retry_delay: float = 1.0

    # === Memo processing ===
    # Leaves room for the system prompt and the JSON reply.
    memo_max_content_tokens: int = 28000

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"
