"""Text helpers shared by every provider.

Covers three concerns:

1. **Prompt-safe embedding** -- scraped page text can contain control
   characters and unbalanced quotes that break the JSON-shaped prompts, so
   :func:`sanitize_content` strips the former and escapes the latter.
2. **Budgeting** -- whitespace word counts and :func:`truncate_content`,
   which keeps captured content within a provider's token estimate.
3. **Chat context** -- :func:`create_system_message` turns the memos of a
   tag into the system prompt used by the tag-scoped chat.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

# Control characters except \n (0x0A) and \r (0x0D).
_CONTROL_CHARS = re.compile(r"[\x00-\x09\x0B\x0C\x0E-\x1F\x7F]")

TRUNCATION_MARKER = "...[Content truncated due to length]"


def sanitize_content(content: str | None) -> str:
    """Strip control characters, then escape backslashes and double quotes."""
    if not content:
        return ""
    content = _CONTROL_CHARS.sub("", content)
    return content.replace("\\", "\\\\").replace('"', '\\"')


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def _memo_field(memo: Mapping[str, Any] | Any, *names: str) -> Any:
    for name in names:
        if isinstance(memo, Mapping):
            value = memo.get(name)
        else:
            value = getattr(memo, name, None)
        if value is not None:
            return value
    return None


def _memo_source(memo: Mapping[str, Any] | Any) -> str:
    return _memo_field(memo, "sourceHtml", "source_html", "rawHtml", "raw_html") or ""


def _memo_structured(memo: Mapping[str, Any] | Any) -> str:
    data = _memo_field(memo, "structuredData", "structured_data")
    return json.dumps(data if data is not None else {}, ensure_ascii=False)


def calculate_memos_word_count(memos: Iterable[Mapping[str, Any] | Any], use_source: bool = False) -> int:
    """Total words the chat context will carry for *memos*."""
    total = 0
    for memo in memos:
        if use_source:
            total += count_words(_memo_source(memo))
        else:
            narrative = _memo_field(memo, "narrative", "content") or ""
            total += count_words(narrative) + count_words(_memo_structured(memo))
    return total


def estimate_memo_tokens(memos: Iterable[Mapping[str, Any] | Any], use_source: bool = False) -> int:
    """Rough token estimate for a chat context (1.3 tokens per word)."""
    return round(calculate_memos_word_count(memos, use_source) * 1.3)


def create_system_message(
    tagged_memos: Iterable[Mapping[str, Any] | Any] = (),
    current_chat_tag: Mapping[str, Any] | Any | None = None,
    use_source: bool = False,
) -> str:
    """Build the system prompt for a tag-scoped chat.

    With no memos this is a plain assistant prompt.  Otherwise each memo is
    listed as ``[Memo n]`` with either its processed narrative and
    structured data or, when *use_source* is set, the original captured
    source and URL.
    """
    memos = list(tagged_memos)
    if not memos:
        return "You are a helpful AI assistant."

    tag_name = _memo_field(current_chat_tag, "name") if current_chat_tag is not None else None
    tag_description = (
        _memo_field(current_chat_tag, "description") if current_chat_tag is not None else None
    )

    blocks: list[str] = []
    for index, memo in enumerate(memos, start=1):
        title = _memo_field(memo, "title") or "Untitled"
        if use_source:
            blocks.append(
                f"[Memo {index}]\n"
                f"Title: {title}\n"
                f"Source Content: {_memo_source(memo)}\n"
                f"URL: {_memo_field(memo, 'url') or 'Unknown'}"
            )
        else:
            narrative = _memo_field(memo, "narrative", "content") or ""
            blocks.append(
                f"[Memo {index}]\n"
                f"Title: {title}\n"
                f"Narrative: {narrative}\n"
                f"Structured Data: {_memo_structured(memo)}"
            )

    total_words = calculate_memos_word_count(memos, use_source)
    lines = ["You are a helpful AI assistant."]
    intro = f"You have access to {len(memos)} saved memos containing {total_words} words of content"
    if tag_name:
        intro += f' tagged with "{tag_name}"'
    lines.append(intro + ".")
    if tag_name:
        lines.append(
            "Refer to this associated tag and description when responding to the user:\n"
            f"Tag: {tag_name}\n"
            f"Description: {tag_description or ''}"
        )
    lines.append("When responding to user queries, prioritize information from these memos:")
    lines.append("\n\n".join(blocks))
    if use_source:
        lines.append(
            "You are working with the original source content of the memos. Use this raw "
            "content to provide detailed, accurate responses based on the original material."
        )
    else:
        lines.append(
            "You are working with processed narratives and structured data from the memos. "
            "Use this curated content to provide focused, organized responses."
        )
    lines.append(
        "You can also use your general knowledge to add context beyond the memos. "
        "Always be clear when you are referencing memo content versus supplementary information.\n"
        "When you use information from a memo, cite it by title in square brackets, "
        "like this: [Title of Memo]."
    )
    return "\n\n".join(lines)


def truncate_content(
    content: str | None,
    max_tokens: int,
    token_counter: Callable[[str], int],
) -> str:
    """Shorten *content* so that ``token_counter`` stays within *max_tokens*.

    The cut lands on a word boundary when one falls in the last 20% of the
    kept text, and :data:`TRUNCATION_MARKER` is appended.
    """
    if not content:
        return ""

    estimated = token_counter(content)
    if estimated <= max_tokens:
        return content

    # 10% below the proportional length as a safety margin.
    target_length = int(len(content) * (max_tokens / estimated) * 0.9)
    truncated = content[:target_length]
    last_space = truncated.rfind(" ")
    if last_space > target_length * 0.8:
        truncated = truncated[:last_space]
    return truncated + TRUNCATION_MARKER


def tag_names(tags: Iterable[Mapping[str, Any] | Any | str] | None) -> list[str]:
    """Extract tag names from ``{name: ...}`` mappings, objects or plain strings."""
    if not tags:
        return []
    names: list[str] = []
    for tag in tags:
        name = tag if isinstance(tag, str) else _memo_field(tag, "name")
        if name:
            names.append(str(name))
    return names
