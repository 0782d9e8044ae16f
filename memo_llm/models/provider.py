"""Provider configuration and exchange models.

Defines Pydantic v2 models for the provider catalog, the persisted provider
configuration, and the values that cross the provider contract (chat
messages, options, results).  All models are frozen; updates go through
``model_copy(update={...})``.

Persisted and UI-facing models serialise with camelCase aliases
(``apiKey``, ``lastUpdated``, ``structuredData``) because that is the shape
stored under the ``llmProviderConfigs`` / ``llmConfig`` keys and consumed by
the extension surfaces.  Construction accepts either spelling.

Provider configuration is a tagged union on ``type``: cloud providers carry
an API key, the local Ollama provider carries host/port and its discovered
models.  :func:`parse_provider_config` is the single entry point for turning
a stored mapping back into the right variant.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from memo_llm.utils.errors import ConfigurationError, UnknownProviderTypeError
from memo_llm.utils.logging import get_logger

_logger = get_logger(__name__)


class ProviderType(str, Enum):  # noqa: UP042 (StrEnum needs 3.11)
    """Identifiers of the supported LLM backends, in catalog order."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GEMINI = "gemini"
    OLLAMA = "ollama"

    @classmethod
    def coerce(cls, value: ProviderType | str) -> ProviderType:
        """Return the enum member for *value* or raise ``UnknownProviderTypeError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownProviderTypeError(value) from None


_CAMEL = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Static catalog entry
# ---------------------------------------------------------------------------
class ProviderDescriptor(BaseModel):
    """Static metadata for one provider type.

    ``models`` is empty for providers whose models are discovered at runtime
    (Ollama); that is the only case where an empty list is legal.
    """

    model_config = _CAMEL

    id: ProviderType
    name: str
    description: str
    requires_api_key: bool
    requires_service: bool = False
    is_local: bool = False
    models: tuple[str, ...] = ()
    vision_models: tuple[str, ...] = ()
    default_model: str | None = None
    api_key_prefix: str | None = None


# ---------------------------------------------------------------------------
# Persisted configuration (tagged union)
# ---------------------------------------------------------------------------
class _ProviderConfigBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    model: str | None = None
    # Epoch milliseconds, stamped by ProviderConfigManager.set_config.
    last_updated: int | None = None
    # True for records produced by the legacy-format upgrade.
    migrated: bool = False

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType(self.type)  # type: ignore[attr-defined]

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-ready camelCase mapping written to the key/value store."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CloudProviderConfig(_ProviderConfigBase):
    """Configuration for an API-key provider (Anthropic, OpenAI, Gemini)."""

    type: Literal["anthropic", "openai", "gemini"]
    api_key: str = ""


class LocalProviderConfig(_ProviderConfigBase):
    """Configuration for the local Ollama daemon."""

    type: Literal["ollama"] = "ollama"
    host: str = "localhost"
    port: int = 11434
    available_models: tuple[str, ...] = ()

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


ProviderConfig = Annotated[
    Union[CloudProviderConfig, LocalProviderConfig],
    Field(discriminator="type"),
]

_CONFIG_ADAPTER: TypeAdapter[CloudProviderConfig | LocalProviderConfig] = TypeAdapter(ProviderConfig)


def parse_provider_config(
    data: Mapping[str, Any] | CloudProviderConfig | LocalProviderConfig,
) -> CloudProviderConfig | LocalProviderConfig:
    """Build the right configuration variant from a stored or UI mapping.

    Raises
    ------
    UnknownProviderTypeError
        If ``type`` names a provider that is not in the catalog.
    ConfigurationError
        If ``type`` is missing or a field has the wrong shape.
    """
    if isinstance(data, (CloudProviderConfig, LocalProviderConfig)):
        return data
    if not isinstance(data, Mapping):
        raise ConfigurationError("Provider configuration must be a mapping")

    raw_type = data.get("type")
    if not raw_type or not isinstance(raw_type, str):
        raise ConfigurationError("Provider configuration is missing a 'type'")
    provider_type = ProviderType.coerce(raw_type)

    payload = dict(data)
    payload["type"] = provider_type.value
    try:
        return _CONFIG_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ConfigurationError(
            f"Invalid configuration fields: {fields}",
            provider_name=provider_type.value,
        ) from exc


# ---------------------------------------------------------------------------
# Chat exchange
# ---------------------------------------------------------------------------
class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


def normalize_messages(
    messages: Iterable[ChatMessage | Mapping[str, Any]],
) -> list[ChatMessage]:
    """Coerce ``{role, content}`` mappings into :class:`ChatMessage` objects."""
    normalized: list[ChatMessage] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            normalized.append(message)
            continue
        try:
            normalized.append(ChatMessage.model_validate(dict(message)))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid chat message: {message!r}") from exc
    return normalized


class ChatOptions(BaseModel):
    """Options recognised by every provider's ``chat``.

    Provider-specific keys survive only when the provider lists them as
    pass-through; anything else is dropped before it reaches the wire.
    """

    model_config = ConfigDict(frozen=True)

    temperature: float = 0.7
    max_tokens: int = 4096
    model: str | None = None
    extras: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        options: Mapping[str, Any] | ChatOptions | None,
        passthrough: Iterable[str] = (),
    ) -> ChatOptions:
        if isinstance(options, ChatOptions):
            allowed = frozenset(passthrough)
            return options.model_copy(
                update={"extras": {k: v for k, v in options.extras.items() if k in allowed}}
            )
        if not options:
            return cls()

        allowed = frozenset(passthrough)
        values: dict[str, Any] = {}
        if options.get("temperature") is not None:
            values["temperature"] = float(options["temperature"])
        max_tokens = options.get("max_tokens", options.get("maxTokens"))
        if max_tokens is not None:
            values["max_tokens"] = int(max_tokens)
        if options.get("model"):
            values["model"] = str(options["model"])

        recognised = {"temperature", "max_tokens", "maxTokens", "model"}
        extras = {k: v for k, v in options.items() if k in allowed and v is not None}
        dropped = sorted(k for k in options if k not in recognised and k not in allowed)
        if dropped:
            _logger.debug("chat_options_dropped", keys=dropped)
        return cls(**values, extras=extras)


class TokenUsage(BaseModel):
    model_config = _CAMEL

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResult(BaseModel):
    """Normalized chat reply returned by every provider."""

    model_config = _CAMEL

    reply: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


# ---------------------------------------------------------------------------
# Memo processing
# ---------------------------------------------------------------------------
class MemoResult(BaseModel):
    """Structured memo fields derived from captured page content.

    Every field is always present; providers backfill missing keys with
    empty values rather than failing.
    """

    model_config = _CAMEL

    title: str = ""
    summary: str = ""
    narrative: str = ""
    structured_data: dict[str, Any] = Field(default_factory=dict)
    selected_tag: str = ""


# ---------------------------------------------------------------------------
# Configuration manager / session results
# ---------------------------------------------------------------------------
class ConnectionTestResult(BaseModel):
    model_config = _CAMEL

    success: bool
    message: str
    models: tuple[str, ...] = ()


class ConfigStatus(BaseModel):
    model_config = _CAMEL

    configured: bool = False
    provider: str | None = None
    model: str | None = None
    has_api_key: bool = False
    last_updated: int | None = None
    migrated: bool = False
    error: str | None = None


class ProviderInfo(BaseModel):
    """Descriptor-shaped summary of a (possibly live) provider."""

    model_config = _CAMEL

    id: ProviderType
    name: str
    description: str
    requires_api_key: bool
    is_local: bool = False
    model: str | None = None
    models: tuple[str, ...] = ()
    vision_models: tuple[str, ...] = ()
    supports_vision: bool = False
    initialized: bool = False
    base_url: str | None = None
