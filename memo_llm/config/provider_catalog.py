"""Static catalog of supported LLM providers.

One immutable :class:`ProviderDescriptor` per provider type, in the order
the settings UI lists them.  The catalog drives three things:

1. UI population (names, descriptions, model pickers).
2. Pre-construction validation (API key prefixes, allowed models).
3. Vision gating (which models accept image input).

Ollama lists no models here because its catalog is whatever the local
daemon has pulled; vision support for it is decided by model family.
"""

from __future__ import annotations

from memo_llm.models.provider import ProviderDescriptor, ProviderType
from memo_llm.utils.errors import ConfigurationError

ANTHROPIC = ProviderDescriptor(
    id=ProviderType.ANTHROPIC,
    name="Anthropic Claude",
    description="Claude AI by Anthropic",
    requires_api_key=True,
    models=(
        "claude-opus-4-20250514",
        "claude-sonnet-4-20250514",
        "claude-3-7-sonnet-20250219",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
    ),
    vision_models=(
        "claude-opus-4-20250514",
        "claude-sonnet-4-20250514",
        "claude-3-7-sonnet-20250219",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
    ),
    default_model="claude-sonnet-4-20250514",
    api_key_prefix="sk-ant-",
)

OPENAI = ProviderDescriptor(
    id=ProviderType.OPENAI,
    name="OpenAI",
    description="GPT models by OpenAI",
    requires_api_key=True,
    models=("o4-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini"),
    vision_models=("o4-mini", "gpt-4o", "gpt-4.1", "gpt-4.1-mini"),
    default_model="gpt-4o",
    api_key_prefix="sk-",
)

GEMINI = ProviderDescriptor(
    id=ProviderType.GEMINI,
    name="Google Gemini",
    description="Gemini AI models by Google",
    requires_api_key=True,
    models=(
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-pro",
        "gemini-pro-vision",
    ),
    vision_models=(
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash",
        "gemini-pro-vision",
    ),
    default_model="gemini-2.5-pro",
    api_key_prefix="AIza",
)

OLLAMA = ProviderDescriptor(
    id=ProviderType.OLLAMA,
    name="Ollama (Local)",
    description="Local models served by an Ollama daemon",
    requires_api_key=False,
    requires_service=True,
    is_local=True,
    default_model="llama2",
)

PROVIDER_CATALOG: tuple[ProviderDescriptor, ...] = (ANTHROPIC, OPENAI, GEMINI, OLLAMA)

_BY_TYPE: dict[ProviderType, ProviderDescriptor] = {d.id: d for d in PROVIDER_CATALOG}

# Ollama model families that accept image input ("llava:13b" -> "llava").
OLLAMA_VISION_FAMILIES: tuple[str, ...] = (
    "llava",
    "bakllava",
    "llama3.2-vision",
    "moondream",
    "minicpm-v",
    "gemma3",
    "qwen2.5vl",
)

# Fixed defaults used when switching to Ollama without a saved config.
OLLAMA_DEFAULT_HOST = "localhost"
OLLAMA_DEFAULT_PORT = 11434

# Model written for configs upgraded from the bare ``anthropicApiKey`` record.
LEGACY_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"


def get_descriptor(provider_type: ProviderType | str) -> ProviderDescriptor:
    """Return the catalog entry for *provider_type*.

    Raises ``UnknownProviderTypeError`` for types outside the catalog.
    """
    return _BY_TYPE[ProviderType.coerce(provider_type)]


def check_api_key_shape(provider_type: ProviderType | str, api_key: str | None) -> None:
    """Validate presence and prefix of an API key without any network I/O.

    Raises
    ------
    ConfigurationError
        If the provider needs a key and *api_key* is empty or has the wrong prefix.
    """
    descriptor = get_descriptor(provider_type)
    if not descriptor.requires_api_key:
        return
    if not api_key or not isinstance(api_key, str) or not api_key.strip():
        raise ConfigurationError(
            f"{descriptor.name} API key is required",
            provider_name=descriptor.id.value,
        )
    prefix = descriptor.api_key_prefix
    if prefix and not api_key.startswith(prefix):
        raise ConfigurationError(
            f"Invalid {descriptor.name} API key format. Keys start with \"{prefix}\"",
            provider_name=descriptor.id.value,
        )


def is_ollama_vision_model(model: str | None) -> bool:
    if not model:
        return False
    family = model.split(":", 1)[0].lower()
    return family in OLLAMA_VISION_FAMILIES
