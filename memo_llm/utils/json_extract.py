"""Recover a JSON object from free-form model output.

Models asked for "JSON only" still wrap it in markdown fences or add a
sentence before and after.  :func:`extract_json_object` tries, in order:

1. ``json.loads`` on the whole reply
2. the body of the first ```` ```json ```` / ```` ``` ```` fenced block
3. the outermost ``{ ... }`` span, after removing trailing commas and
   control characters

and raises :class:`ResponseParseError` when none yields a JSON object.
"""

from __future__ import annotations

import json
import re
from typing import Any

from memo_llm.utils.errors import ResponseParseError

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")
_TRAILING_COMMA_OBJ = re.compile(r",\s*}")
_TRAILING_COMMA_ARR = re.compile(r",\s*]")
# Raw control characters are illegal inside JSON strings.  \n, \r and \t
# between tokens are legal whitespace, so they stay.
_JSON_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")

EXCERPT_LENGTH = 200


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _outer_brace_span(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _clean(span: str) -> str:
    span = _TRAILING_COMMA_OBJ.sub("}", span)
    span = _TRAILING_COMMA_ARR.sub("]", span)
    return _JSON_CONTROL_CHARS.sub("", span)


def extract_json_object(reply: str | None, provider_name: str | None = None) -> dict[str, Any]:
    """Return the JSON object embedded in *reply*.

    Raises
    ------
    ResponseParseError
        With a truncated excerpt of *reply* when no object can be recovered.
    """
    text = (reply or "").strip()

    parsed = _loads_object(text)
    if parsed is not None:
        return parsed

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        body = fenced.group(1).strip()
        parsed = _loads_object(body)
        if parsed is not None:
            return parsed
        text = body

    span = _outer_brace_span(text)
    if span is not None:
        parsed = _loads_object(span) or _loads_object(_clean(span))
        if parsed is not None:
            return parsed

    excerpt = (reply or "")[:EXCERPT_LENGTH]
    suffix = "..." if reply and len(reply) > EXCERPT_LENGTH else ""
    raise ResponseParseError(
        message=f"Failed to parse model response as JSON. Response: {excerpt}{suffix}",
        provider_name=provider_name,
        excerpt=excerpt,
    )
