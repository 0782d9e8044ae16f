"""Unit tests for JSON recovery from free-form model replies."""

from __future__ import annotations

import pytest

from memo_llm.utils.errors import ResponseParseError
from memo_llm.utils.json_extract import EXCERPT_LENGTH, extract_json_object


class TestExtractJsonObject:
    def test_plain_json(self) -> None:
        assert extract_json_object('{"title": "A"}') == {"title": "A"}

    def test_fenced_json_block(self) -> None:
        reply = '```json\n{"title": "Fenced", "summary": "s"}\n```'
        assert extract_json_object(reply) == {"title": "Fenced", "summary": "s"}

    def test_unlabelled_fence(self) -> None:
        reply = 'Here you go:\n```\n{"title": "B"}\n```\nThanks'
        assert extract_json_object(reply) == {"title": "B"}

    def test_leading_and_trailing_prose(self) -> None:
        reply = 'Sure! The memo is {"title": "C", "structuredData": {"k": 1}} hope it helps.'
        assert extract_json_object(reply) == {"title": "C", "structuredData": {"k": 1}}

    def test_trailing_commas_are_cleaned(self) -> None:
        reply = 'Result: {"title": "D", "tags": ["x", "y",],}'
        assert extract_json_object(reply) == {"title": "D", "tags": ["x", "y"]}

    def test_control_characters_inside_span_are_removed(self) -> None:
        reply = 'prefix {"title": "E\x07"} suffix'
        assert extract_json_object(reply) == {"title": "E"}

    def test_top_level_array_is_not_an_object(self) -> None:
        with pytest.raises(ResponseParseError):
            extract_json_object('["not", "an", "object"]')

    def test_no_json_raises_with_excerpt(self) -> None:
        reply = "I could not process this page. " * 20
        with pytest.raises(ResponseParseError) as exc_info:
            extract_json_object(reply, provider_name="anthropic")
        err = exc_info.value
        assert err.provider_name == "anthropic"
        assert len(err.excerpt) == EXCERPT_LENGTH
        assert reply.startswith(err.excerpt)

    def test_empty_reply_raises(self) -> None:
        with pytest.raises(ResponseParseError):
            extract_json_object("")

    def test_none_reply_raises(self) -> None:
        with pytest.raises(ResponseParseError):
            extract_json_object(None)
