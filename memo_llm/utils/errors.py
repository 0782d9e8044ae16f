"""Custom exception hierarchy for memo-llm.

All library exceptions inherit from :class:`MemoLLMError`, which carries an
optional ``provider_name`` so error handlers can identify which backend
(e.g. "openai", "ollama") caused the failure.

The hierarchy is organized by the kind of failure, not by provider:

    MemoLLMError  (base -- catch-all for any memo-llm error)
    +-- ConfigurationError        (shape/presence problems, no network involved)
    |   +-- UnknownProviderTypeError
    +-- ProviderNotConfiguredError (nothing usable in persisted storage)
    +-- NotInitializedError       (contract method called before initialize)
    +-- AuthenticationError       (credential rejected by the remote service)
    +-- RateLimitError            (rate limit signalled by the remote service)
    |   +-- QuotaExceededError    (billing / quota exhausted)
    +-- ProviderUnavailableError  (service unreachable)
    |   +-- ProviderTimeoutError
    |   +-- OriginRejectedError   (local daemon refused the request origin)
    +-- LLMError                  (any other LLM API call failure)
    |   +-- ContentBlockedError   (safety filter / refusal)
    |   +-- ResponseParseError    (reply could not be coerced into JSON)
    +-- StorageError              (key/value persistence failed)

Callers pick the level they care about: the UI maps ``ConfigurationError``
to a form message, ``RateLimitError`` to "wait and retry", and
``ProviderNotConfiguredError`` to "open Settings".
"""

from __future__ import annotations


class MemoLLMError(Exception):
    """Base exception for all memo-llm errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration errors (caught before any network call)
# ---------------------------------------------------------------------------

class ConfigurationError(MemoLLMError):
    """Raised when a provider configuration fails shape or presence checks."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnknownProviderTypeError(ConfigurationError):
    """Raised when a provider type is not in the catalog.

    Usually means persisted configuration drifted from the code (a provider
    was removed).  Never silently ignored.
    """

    def __init__(self, provider_type: object) -> None:
        self._provider_type = str(provider_type)
        super().__init__(message=f"Unknown provider type: '{self._provider_type}'")

    @property
    def provider_type(self) -> str:
        return self._provider_type


class ProviderNotConfiguredError(MemoLLMError):
    """Raised when no usable provider configuration is persisted."""

    def __init__(
        self,
        message: str = "No LLM provider configured. Configure a provider in Settings.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotInitializedError(MemoLLMError):
    """Raised when a provider is used before ``initialize`` succeeded."""

    def __init__(
        self,
        message: str = "Provider not initialized. Call initialize() first.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Remote service errors
# ---------------------------------------------------------------------------

class AuthenticationError(MemoLLMError):
    """Raised when the remote service rejects the configured credential."""

    def __init__(
        self,
        message: str = "Authentication failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(MemoLLMError):
    """Raised when an API rate limit is exceeded.

    Not retried automatically for metered cloud APIs; the UI suggests the
    user waits and tries again.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class QuotaExceededError(RateLimitError):
    """Raised when the account quota or credit balance is exhausted."""

    def __init__(
        self,
        message: str = "API quota exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(MemoLLMError):
    """Raised when a provider endpoint is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(ProviderUnavailableError):
    """Raised when a request exceeded its timeout."""

    def __init__(
        self,
        message: str = "Request timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class OriginRejectedError(ProviderUnavailableError):
    """Raised when a local daemon rejects the caller's origin (HTTP 403).

    Fixing it requires a daemon-side change, so the message includes the
    remediation steps.
    """

    def __init__(
        self,
        message: str = "Request origin rejected by the service",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(MemoLLMError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ContentBlockedError(LLMError):
    """Raised when the model output was withheld by a safety filter."""

    def __init__(
        self,
        message: str = "Content was blocked by safety filters",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ResponseParseError(LLMError):
    """Raised when a model reply cannot be coerced into the memo JSON shape."""

    def __init__(
        self,
        message: str = "Failed to parse model response as JSON",
        provider_name: str | None = None,
        excerpt: str = "",
    ) -> None:
        self._excerpt = excerpt
        super().__init__(message=message, provider_name=provider_name)

    @property
    def excerpt(self) -> str:
        return self._excerpt


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class StorageError(MemoLLMError):
    """Raised when a key/value store read or write fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
