"""Shared behaviour for every LLM provider adapter.

Concrete adapters implement the wire calls (``initialize``, ``chat``) and
the token estimate; this base class supplies the parts that are identical
across backends:

    - initialization guard and common state (model, descriptor, settings)
    - option filtering against each adapter's pass-through set
    - the memo pipeline: truncate -> sanitize -> prompt -> chat ->
      JSON recovery -> backfill into :class:`MemoResult`
    - descriptor-shaped :meth:`get_provider_info`
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

import structlog

from memo_llm.config.provider_catalog import get_descriptor
from memo_llm.config.settings import Settings
from memo_llm.interfaces.llm_provider import ILLMProvider
from memo_llm.models.provider import (
    ChatMessage,
    ChatOptions,
    CloudProviderConfig,
    LocalProviderConfig,
    MemoResult,
    ProviderInfo,
    ProviderType,
    normalize_messages,
)
from memo_llm.utils.errors import ConfigurationError, NotInitializedError
from memo_llm.utils.json_extract import extract_json_object
from memo_llm.utils.text import (
    create_system_message,
    sanitize_content,
    tag_names,
    truncate_content,
)

logger = structlog.get_logger(logger_name=__name__)

_MEMO_SYSTEM_TEMPLATE = """You are an AI assistant that processes web content into structured memos.
Given captured page content and its URL, you will:
1. Extract and summarize the key information
2. Create a narrative version
3. Generate structured data
4. Select the most appropriate tag from the available tags

Special instructions for YouTube content:
- If a transcript is not available, focus on the video title, description, metadata and channel information
- Create a meaningful summary based on the available information
- Do not return generic error messages like "content not accessible"
- Always provide a substantive analysis based on the YouTube metadata provided

Available tags: {tags}"""

_MEMO_USER_TEMPLATE = """Process this web content into a memo:
URL: {url}
Content: {content}

Return the results in this JSON format:
{{
    "title": "Extracted title",
    "summary": "Brief summary",
    "narrative": "Narrative version",
    "structuredData": {{}},
    "selectedTag": "Most appropriate tag"
}}"""

_JSON_ONLY_INSTRUCTION = (
    "Return only valid JSON. Do not wrap it in markdown and do not add any text "
    "before or after the JSON object."
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def memo_result_from_payload(payload: Mapping[str, Any]) -> MemoResult:
    """Backfill and coerce a parsed model reply into a :class:`MemoResult`.

    Missing fields become empty strings (``structured_data`` an empty dict);
    non-string scalars are stringified and a non-object ``structuredData``
    is discarded.
    """
    structured = payload.get("structuredData", payload.get("structured_data"))
    if not isinstance(structured, dict):
        if structured is not None:
            logger.debug("memo_structured_data_discarded", got=type(structured).__name__)
        structured = {}
    return MemoResult(
        title=_as_text(payload.get("title")),
        summary=_as_text(payload.get("summary")),
        narrative=_as_text(payload.get("narrative")),
        structured_data=structured,
        selected_tag=_as_text(payload.get("selectedTag", payload.get("selected_tag"))),
    )


class BaseLLMProvider(ILLMProvider):
    """Common state and the memo pipeline shared by all adapters.

    Subclasses set :attr:`provider_type` and :attr:`passthrough_options`
    and implement ``initialize``, ``chat`` and ``calculate_tokens``.
    """

    provider_type: ClassVar[ProviderType]
    # Provider-specific chat option keys forwarded to the vendor call.
    passthrough_options: ClassVar[frozenset[str]] = frozenset()
    # Temperature used for memo extraction when the caller sets none.
    memo_temperature: ClassVar[float | None] = None
    memo_json_only: ClassVar[bool] = False

    def __init__(
        self,
        config: CloudProviderConfig | LocalProviderConfig,
        settings: Settings | None = None,
    ) -> None:
        self._config = config
        self._settings = settings or Settings()
        self._descriptor = get_descriptor(self.provider_type)
        self._model: str | None = config.model or self._descriptor.default_model
        self._initialized = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def config(self) -> CloudProviderConfig | LocalProviderConfig:
        return self._config

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError(provider_name=self.get_provider_name())

    def _chat_options(self, options: Mapping[str, Any] | ChatOptions | None) -> ChatOptions:
        return ChatOptions.from_mapping(options, self.passthrough_options)

    def _split_system(
        self, messages: Iterable[ChatMessage | Mapping[str, Any]]
    ) -> tuple[str, list[ChatMessage]]:
        """Separate system turns (joined) from the conversational turns."""
        normalized = normalize_messages(messages)
        system = "\n\n".join(m.content for m in normalized if m.role == "system")
        turns = [m for m in normalized if m.role != "system"]
        if not turns:
            raise ConfigurationError(
                "At least one user or assistant message is required",
                provider_name=self.get_provider_name(),
            )
        return system, turns

    # ------------------------------------------------------------------
    # ILLMProvider: metadata
    # ------------------------------------------------------------------

    def get_provider_name(self) -> str:
        return self.provider_type.value

    def supports_vision(self) -> bool:
        return bool(self._model) and self._model in self._descriptor.vision_models

    def is_available(self) -> bool:
        return self._initialized

    def get_provider_info(self) -> ProviderInfo:
        d = self._descriptor
        return ProviderInfo(
            id=d.id,
            name=d.name,
            description=d.description,
            requires_api_key=d.requires_api_key,
            is_local=d.is_local,
            model=self._model,
            models=d.models,
            vision_models=d.vision_models,
            supports_vision=self.supports_vision(),
            initialized=self._initialized,
        )

    # ------------------------------------------------------------------
    # Text helpers
    # ------------------------------------------------------------------

    def create_system_message(
        self,
        tagged_memos: Iterable[Any] = (),
        current_chat_tag: Any = None,
        use_source: bool = False,
    ) -> str:
        return create_system_message(tagged_memos, current_chat_tag, use_source)

    def truncate_content(self, content: str | None, max_tokens: int | None = None) -> str:
        budget = max_tokens if max_tokens is not None else self._settings.memo_max_content_tokens
        return truncate_content(content, budget, self.calculate_tokens)

    # ------------------------------------------------------------------
    # Memo pipeline
    # ------------------------------------------------------------------

    def _build_memo_messages(
        self, content: str, url: str | None, tags: Iterable[Any] | None
    ) -> list[ChatMessage]:
        names = tag_names(tags)
        system = _MEMO_SYSTEM_TEMPLATE.format(tags=", ".join(names) if names else "general")
        user = _MEMO_USER_TEMPLATE.format(url=url or "Unknown", content=content)
        if self.memo_json_only:
            user = f"{user}\n\n{_JSON_ONLY_INSTRUCTION}"
        return [
            ChatMessage(role="system", content=system),
            ChatMessage(role="user", content=user),
        ]

    def _memo_chat_options(self, options: Mapping[str, Any] | None) -> dict[str, Any]:
        merged = dict(options or {})
        if self.memo_temperature is not None and merged.get("temperature") is None:
            merged["temperature"] = self.memo_temperature
        return merged

    async def process_memo(
        self,
        content: str,
        url: str | None = None,
        tags: Iterable[Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> MemoResult:
        """Summarize captured *content* into memo fields.

        *url* and *tags* only shape the prompt; they are never forwarded to
        the vendor call as options.
        """
        self._require_initialized()

        truncated = self.truncate_content(content)
        if len(truncated) < len(content or ""):
            logger.info(
                "memo_content_truncated",
                provider=self.get_provider_name(),
                original_chars=len(content or ""),
                kept_chars=len(truncated),
            )
        messages = self._build_memo_messages(sanitize_content(truncated), url, tags)

        result = await self.chat(messages, self._memo_chat_options(options))
        payload = extract_json_object(result.reply, provider_name=self.get_provider_name())
        memo = memo_result_from_payload(payload)
        logger.info(
            "memo_processed",
            provider=self.get_provider_name(),
            model=self._model,
            selected_tag=memo.selected_tag,
        )
        return memo
