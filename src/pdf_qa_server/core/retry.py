"""
Retry Executor

Bounded retry-with-backoff for fallible async operations. Used by the
embedding client (every call) and by the answer pipeline (generation calls),
with different policies.

Semantics
---------
- At most ``max_retries`` invocations of the wrapped operation.
- A failure is retried only if the policy's classifier says so; any other
  failure propagates immediately.
- Waits start at ``initial_delay`` and grow by ``backoff`` per attempt, capped
  at ``max_delay``.
- When every attempt failed retryably, ``ExhaustedRetriesError`` is raised,
  chained from the last error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import settings
from .errors import ExhaustedRetriesError, RateLimitError, TransientServiceError

logger = logging.getLogger("pdfqa.retry")

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 503})
RATE_LIMIT_STATUS_CODES = frozenset({429})

_TRANSIENT_MARKERS = ("429", "503", "Too Many Requests", "Service Unavailable")
_RATE_LIMIT_MARKERS = ("429", "Too Many Requests")


# ---------------------------------------------------------------------
# Error Classification
# ---------------------------------------------------------------------

def _status_of(exc: BaseException) -> Optional[int]:
    """
    Return an upstream status code carried by ``exc``, if any.

    Looks at ``status_code``, ``status`` and ``response.status_code``, which
    covers our own errors and ``httpx.HTTPStatusError``.
    """
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value

    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value

    return None


def _matches(exc: BaseException, codes: frozenset, markers: tuple) -> bool:
    status = _status_of(exc)
    if status is not None and status in codes:
        return True

    message = str(exc)
    return any(marker in message for marker in markers)


def is_transient_error(exc: BaseException) -> bool:
    """True for rate limiting or temporary unavailability (429/503)."""
    if isinstance(exc, TransientServiceError):
        return True
    return _matches(exc, TRANSIENT_STATUS_CODES, _TRANSIENT_MARKERS)


def is_rate_limit_error(exc: BaseException) -> bool:
    """True only for 429-class rate limiting."""
    if isinstance(exc, RateLimitError):
        return True
    return _matches(exc, RATE_LIMIT_STATUS_CODES, _RATE_LIMIT_MARKERS)


# ---------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """
    Parameters for one retry call site.

    Delays are in seconds. ``sleep`` is injectable so tests can observe the
    waits without actually sleeping.
    """

    max_retries: int = 5
    initial_delay: float = 5.0
    backoff: float = 1.5
    max_delay: float = 60.0
    is_retryable: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1 so waits never shrink")


def embedding_retry_policy() -> RetryPolicy:
    """Policy for embedding calls: 429/503 retried, 60 s cap."""
    return RetryPolicy(
        max_retries=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay,
        backoff=settings.retry_backoff,
        max_delay=settings.embedding_retry_max_delay,
        is_retryable=is_transient_error,
    )


def generation_retry_policy() -> RetryPolicy:
    """Policy for generation calls: only 429 retried, 30 s cap."""
    return RetryPolicy(
        max_retries=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay,
        backoff=settings.retry_backoff,
        max_delay=settings.generation_retry_max_delay,
        is_retryable=is_rate_limit_error,
    )


# ---------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------

def _log_before_sleep(policy: RetryPolicy, name: str) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            "%s failed (attempt %d/%d): %s; retrying in %.1fs",
            name,
            state.attempt_number,
            policy.max_retries,
            exc,
            delay,
        )

    return _log


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    name: Optional[str] = None,
) -> T:
    """
    Run ``fn`` under ``policy``.

    Parameters
    ----------
    fn : Callable[[], Awaitable[T]]
        Zero-argument coroutine factory; called once per attempt.

    policy : Optional[RetryPolicy]
        Defaults to a transient-error policy with default delays.

    name : Optional[str]
        Operation name used in log messages.

    Returns
    -------
    T
        The first successful result.

    Raises
    ------
    ExhaustedRetriesError
        If every attempt failed with a retryable error.

    Exception
        Any non-retryable error, unchanged, on the attempt that raised it.
    """
    policy = policy or RetryPolicy()
    name = name or getattr(fn, "__name__", "operation")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff,
            max=policy.max_delay,
        ),
        retry=retry_if_exception(policy.is_retryable),
        before_sleep=_log_before_sleep(policy, name),
        sleep=policy.sleep,
        reraise=False,
    )

    try:
        async for attempt in retrying:
            with attempt:
                return await fn()
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        logger.error(
            "%s gave up after %d attempts: %s",
            name,
            policy.max_retries,
            last_error,
        )
        raise ExhaustedRetriesError(policy.max_retries, last_error) from last_error
