"""
abtest_sdk.tier1_runtime.retry
───────────────────────────────────
Retry/backoff policy with jitter, backed by Tenacity. Classifies errors as
retryable or non-retryable. The engine only retries optimistic-lock
conflicts locally; full store outages are surfaced to the caller.

Usage:
    async for attempt in retrying(max_attempts=5, on=[ConcurrentUpdateConflict]):
        with attempt:
            await read_modify_write()
"""
from __future__ import annotations

from typing import Type

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from abtest_sdk.tier0_core.errors import NoVariantsError, NotFoundError, ValidationError

# Errors that are NEVER retried regardless of policy
_NON_RETRYABLE: tuple[Type[Exception], ...] = (
    NotFoundError,
    NoVariantsError,
    ValidationError,
)


def _is_retryable(exc: BaseException) -> bool:
    """Return True if the exception should be retried."""
    return not isinstance(exc, _NON_RETRYABLE)


def retrying(
    max_attempts: int = 5,
    min_wait: float = 0.01,
    max_wait: float = 0.5,
    jitter: float = 0.01,
    on: list[Type[Exception]] | None = None,
) -> AsyncRetrying:
    """
    Build an AsyncRetrying with exponential backoff and jitter.

    Args:
        max_attempts: Total number of attempts (including first).
        min_wait:     Minimum wait seconds between retries.
        max_wait:     Maximum wait seconds between retries.
        jitter:       Maximum random seconds added to each wait.
        on:           Exception types to retry on. If None, retries every
                      error except the non-retryable taxonomy.

    The last exception is re-raised once attempts are exhausted.
    """
    if on:
        retry_on = retry_if_exception_type(tuple(on))
    else:
        retry_on = retry_if_exception(_is_retryable)

    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait)
        + wait_random(0, jitter),
        retry=retry_on,
        reraise=True,
    )


__all__ = ["retrying"]
