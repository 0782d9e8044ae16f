"""Unit tests for the shared memo pipeline in BaseLLMProvider."""

from __future__ import annotations

import math

import pytest

from memo_llm.models.provider import ChatOptions, ChatResult, CloudProviderConfig, ProviderType
from memo_llm.providers.llm.base import BaseLLMProvider, memo_result_from_payload
from memo_llm.utils.errors import NotInitializedError, ResponseParseError
from memo_llm.utils.text import TRUNCATION_MARKER


class ScriptedProvider(BaseLLMProvider):
    """Returns canned replies and records what ``chat`` received."""

    provider_type = ProviderType.ANTHROPIC
    passthrough_options = frozenset({"top_k"})

    def __init__(self, reply: str, settings) -> None:
        super().__init__(CloudProviderConfig(type="anthropic", api_key="sk-ant-x"), settings)
        self.reply = reply
        self.calls: list[tuple[list, ChatOptions]] = []

    async def initialize(self, api_key=None) -> bool:
        self._initialized = True
        return True

    async def chat(self, messages, options=None) -> ChatResult:
        self._require_initialized()
        self.calls.append((list(messages), self._chat_options(options)))
        return ChatResult(reply=self.reply)

    def calculate_tokens(self, text) -> int:
        return math.ceil(len(text or "") / 4)


_FULL_REPLY = (
    '{"title": "Detroit Techno", "summary": "Origins", "narrative": "Belleville Three",'
    ' "structuredData": {"city": "Detroit"}, "selectedTag": "music"}'
)


async def _provider(reply: str, settings) -> ScriptedProvider:
    provider = ScriptedProvider(reply, settings)
    await provider.initialize()
    return provider


class TestProcessMemo:
    @pytest.mark.asyncio
    async def test_requires_initialize(self, settings) -> None:
        provider = ScriptedProvider(_FULL_REPLY, settings)
        with pytest.raises(NotInitializedError):
            await provider.process_memo("content")

    @pytest.mark.asyncio
    async def test_parses_plain_json(self, settings) -> None:
        provider = await _provider(_FULL_REPLY, settings)
        memo = await provider.process_memo("page text", url="https://example.com", tags=[{"name": "music"}])
        assert memo.title == "Detroit Techno"
        assert memo.structured_data == {"city": "Detroit"}
        assert memo.selected_tag == "music"

    @pytest.mark.asyncio
    async def test_parses_fenced_reply(self, settings) -> None:
        provider = await _provider(f"Here is your memo:\n```json\n{_FULL_REPLY}\n```\nEnjoy!", settings)
        memo = await provider.process_memo("page text")
        assert memo.summary == "Origins"

    @pytest.mark.asyncio
    async def test_unparseable_reply(self, settings) -> None:
        provider = await _provider("I could not read that page, sorry.", settings)
        with pytest.raises(ResponseParseError) as exc_info:
            await provider.process_memo("page text")
        assert "could not read" in exc_info.value.excerpt

    @pytest.mark.asyncio
    async def test_missing_fields_are_backfilled(self, settings) -> None:
        provider = await _provider('{"title": "Only a title"}', settings)
        memo = await provider.process_memo("page text")
        assert memo.title == "Only a title"
        assert memo.summary == ""
        assert memo.narrative == ""
        assert memo.structured_data == {}
        assert memo.selected_tag == ""

    @pytest.mark.asyncio
    async def test_prompt_carries_url_and_tags_not_options(self, settings) -> None:
        provider = await _provider(_FULL_REPLY, settings)
        await provider.process_memo(
            'He said "hi"',
            url="https://example.com/a",
            tags=["music", {"name": "history"}],
            options={"top_k": 4, "url": "https://leak", "tags": ["leak"]},
        )

        messages, options = provider.calls[0]
        system, user = messages
        assert system.role == "system"
        assert "Available tags: music, history" in system.content
        assert "URL: https://example.com/a" in user.content
        assert 'He said \\"hi\\"' in user.content
        assert options.extras == {"top_k": 4}

    @pytest.mark.asyncio
    async def test_defaults_when_no_url_or_tags(self, settings) -> None:
        provider = await _provider(_FULL_REPLY, settings)
        await provider.process_memo("text")
        system, user = provider.calls[0][0]
        assert "Available tags: general" in system.content
        assert "URL: Unknown" in user.content

    @pytest.mark.asyncio
    async def test_long_content_is_truncated(self, settings) -> None:
        small = settings.model_copy(update={"memo_max_content_tokens": 50})
        provider = await _provider(_FULL_REPLY, small)
        await provider.process_memo("word " * 1000)
        user = provider.calls[0][0][1]
        assert TRUNCATION_MARKER in user.content


class TestMemoResultFromPayload:
    def test_snake_case_keys(self) -> None:
        memo = memo_result_from_payload({"structured_data": {"a": 1}, "selected_tag": "x"})
        assert memo.structured_data == {"a": 1}
        assert memo.selected_tag == "x"

    def test_coerces_non_strings(self) -> None:
        memo = memo_result_from_payload({"title": 42, "narrative": ["a", "b"], "structuredData": "oops"})
        assert memo.title == "42"
        assert memo.narrative == '["a", "b"]'
        assert memo.structured_data == {}


def test_truncate_content_uses_provider_estimate(settings) -> None:
    provider = ScriptedProvider(_FULL_REPLY, settings)
    assert provider.truncate_content("short", max_tokens=100) == "short"
    cut = provider.truncate_content("abcd " * 200, max_tokens=10)
    assert cut.endswith(TRUNCATION_MARKER)
    assert len(cut) < 200


def test_create_system_message_delegates(settings) -> None:
    provider = ScriptedProvider(_FULL_REPLY, settings)
    assert provider.create_system_message() == "You are a helpful AI assistant."
    text = provider.create_system_message([{"title": "A", "narrative": "n"}], {"name": "music"})
    assert "[Memo 1]" in text
    assert 'tagged with "music"' in text
