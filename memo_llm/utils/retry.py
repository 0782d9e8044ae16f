"""Exponential-backoff retry for transient local-service failures.

Only the Ollama provider retries.  Cloud APIs are metered, so a blind retry
there multiplies cost; callers decide for themselves.

The delay for attempt ``n`` (1-based) is ``base_delay * 2 ** (n - 1)`` plus
up to 10% jitter, capped at ``max_delay``.  After the last attempt the most
recent exception is re-raised unchanged so callers still see the specific
failure (timeout, origin rejection, ...), never a generic wrapper.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar, cast

import structlog

from memo_llm.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

MAX_RETRY_DELAY = 30.0


def backoff_delay(attempt: int, base_delay: float, max_delay: float = MAX_RETRY_DELAY) -> float:
    """Return the sleep before retrying after failed *attempt* (1-based)."""
    exponential = base_delay * (2 ** (attempt - 1))
    jitter = random.random() * 0.1 * exponential
    return min(exponential + jitter, max_delay)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[_T]],
    *,
    max_attempts: int,
    base_delay: float,
    is_retryable: Callable[[BaseException], bool],
    operation: str = "request",
    logger: structlog.BoundLogger | None = None,
) -> _T:
    """Await ``fn()`` up to *max_attempts* times.

    Parameters
    ----------
    fn:
        Zero-argument coroutine factory; called once per attempt.
    max_attempts:
        Total attempts including the first (values below 1 mean 1).
    base_delay:
        Seconds before the first retry.
    is_retryable:
        Predicate deciding whether an exception is transient.  Non-retryable
        exceptions propagate immediately.
    operation:
        Label used in log events.
    """
    log = logger or _logger
    attempts = max(1, max_attempts)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            last_error = exc
            if not is_retryable(exc):
                log.debug("retry_not_retryable", operation=operation, error=str(exc))
                raise
            if attempt == attempts:
                break
            delay = backoff_delay(attempt, base_delay)
            log.info(
                "retry_scheduled",
                operation=operation,
                attempt=attempt,
                max_attempts=attempts,
                delay_s=round(delay, 3),
                error=str(exc),
            )
            await asyncio.sleep(delay)

    log.warning("retry_exhausted", operation=operation, attempts=attempts)
    # The loop only exits through the break above, after recording the error.
    raise cast(Exception, last_error)
