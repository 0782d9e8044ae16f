"""Shared helpers that turn vendor failures into memo-llm exceptions.

Each provider adapter extracts an HTTP status and message from its own SDK
exception and hands them to :func:`classify_status_error`, so the four
backends report auth, quota, rate-limit and availability failures through
the same exception types.
"""

from __future__ import annotations

from memo_llm.utils.errors import (
    AuthenticationError,
    LLMError,
    MemoLLMError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    QuotaExceededError,
    RateLimitError,
)

_QUOTA_HINTS = (
    "insufficient_quota",
    "quota",
    "credit balance",
    "billing",
)
_AUTH_HINTS = (
    "invalid_api_key",
    "invalid x-api-key",
    "api key not valid",
    "api_key_invalid",
    "permission_denied",
    "unauthorized",
    "authentication",
)
_TIMEOUT_HINTS = ("timed out", "timeout")


def is_timeout_message(message: str) -> bool:
    lowered = message.lower()
    return any(hint in lowered for hint in _TIMEOUT_HINTS)


def classify_status_error(
    status: int | None,
    message: str,
    provider_name: str,
    label: str,
) -> MemoLLMError:
    """Map an HTTP status plus error body to the memo-llm taxonomy.

    Parameters
    ----------
    status:
        HTTP status code, or ``None`` when the failure had no response.
    message:
        Error text from the response body (used for quota/auth hints).
    provider_name:
        Catalog id attached to the resulting exception.
    label:
        Human-readable provider name used in messages ("OpenAI").
    """
    lowered = message.lower()

    if status == 429 or "rate_limit" in lowered or "rate limit" in lowered:
        if any(hint in lowered for hint in _QUOTA_HINTS):
            return QuotaExceededError(f"{label} API quota exceeded: {message}", provider_name)
        return RateLimitError(f"{label} API rate limit exceeded: {message}", provider_name)

    if status in (401, 403) or any(hint in lowered for hint in _AUTH_HINTS):
        return AuthenticationError(
            f"Invalid {label} API key or insufficient permissions: {message}",
            provider_name,
        )

    if any(hint in lowered for hint in _QUOTA_HINTS):
        return QuotaExceededError(f"{label} API quota exceeded: {message}", provider_name)

    if status in (408, 504) or is_timeout_message(message):
        return ProviderTimeoutError(f"{label} request timed out: {message}", provider_name)

    if status is not None and (status >= 500 or status == 529):
        return ProviderUnavailableError(
            f"{label} service unavailable (HTTP {status}): {message}", provider_name
        )

    if status is None:
        return ProviderUnavailableError(f"{label} connection failed: {message}", provider_name)

    return LLMError(f"{label} API error (HTTP {status}): {message}", provider_name)
