"""
Retry Executor Tests

The sleep function is replaced by a recorder so no test actually waits.
"""

import pytest
import httpx

from pdf_qa_server.core.errors import (
    ExhaustedRetriesError,
    RateLimitError,
    TransientServiceError,
    UpstreamServiceError,
)
from pdf_qa_server.core.retry import (
    RetryPolicy,
    embedding_retry_policy,
    generation_retry_policy,
    is_rate_limit_error,
    is_transient_error,
    with_retry,
)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class Flaky:
    """Raises the given errors in order, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def sleep():
    return RecordingSleep()


def make_policy(sleep, **overrides):
    params = dict(max_retries=5, initial_delay=1.0, backoff=2.0, max_delay=3.0, sleep=sleep)
    params.update(overrides)
    return RetryPolicy(**params)


# ---------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_transient_failures_then_success(sleep):
    fn = Flaky([TransientServiceError("503", status_code=503), RateLimitError("429")])

    result = await with_retry(fn, make_policy(sleep, max_delay=60.0))

    assert result == "ok"
    assert fn.calls == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_delays_grow_and_are_capped(sleep):
    fn = Flaky([RateLimitError("429")] * 10)

    with pytest.raises(ExhaustedRetriesError):
        await with_retry(fn, make_policy(sleep))

    assert fn.calls == 5
    assert sleep.delays == [1.0, 2.0, 3.0, 3.0]
    assert sleep.delays == sorted(sleep.delays)


@pytest.mark.asyncio
async def test_exhaustion_chains_last_error(sleep):
    last = RateLimitError("still limited")
    fn = Flaky([RateLimitError("429"), RateLimitError("429"), last])

    with pytest.raises(ExhaustedRetriesError) as exc_info:
        await with_retry(fn, make_policy(sleep, max_retries=3))

    err = exc_info.value
    assert err.attempts == 3
    assert err.last_error is last
    assert err.__cause__ is last


@pytest.mark.asyncio
async def test_fatal_error_invoked_once(sleep):
    fn = Flaky([UpstreamServiceError("bad request", status_code=400)])

    with pytest.raises(UpstreamServiceError):
        await with_retry(fn, make_policy(sleep))

    assert fn.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rate_limit_policy_does_not_retry_503(sleep):
    fn = Flaky([TransientServiceError("unavailable", status_code=503)])
    policy = make_policy(sleep, is_retryable=is_rate_limit_error)

    with pytest.raises(TransientServiceError):
        await with_retry(fn, policy)

    assert fn.calls == 1


@pytest.mark.asyncio
async def test_success_on_first_attempt_never_sleeps(sleep):
    fn = Flaky([], result=42)

    assert await with_retry(fn, make_policy(sleep)) == 42
    assert sleep.delays == []


# ---------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "overrides",
    [
        {"max_retries": 0},
        {"initial_delay": -1.0},
        {"max_delay": -1.0},
        {"backoff": 0.5},
    ],
)
def test_invalid_policy_rejected(overrides):
    with pytest.raises(ValueError):
        RetryPolicy(**overrides)


def test_standard_policies():
    embedding = embedding_retry_policy()
    generation = generation_retry_policy()

    assert embedding.max_retries == 5
    assert embedding.initial_delay == 5.0
    assert embedding.backoff == 1.5
    assert embedding.max_delay == 60.0
    assert embedding.is_retryable is is_transient_error

    assert generation.max_delay == 30.0
    assert generation.is_retryable is is_rate_limit_error


# ---------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------

class _StatusError(Exception):
    def __init__(self, status):
        super().__init__("upstream failure")
        self.status = status


def _http_status_error(code):
    request = httpx.Request("POST", "https://example.test")
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError("failure", request=request, response=response)


@pytest.mark.parametrize(
    "exc, transient, rate_limited",
    [
        (RateLimitError("limited"), True, True),
        (TransientServiceError("down", status_code=503), True, False),
        (_StatusError(429), True, True),
        (_StatusError(503), True, False),
        (_StatusError(500), False, False),
        (_http_status_error(429), True, True),
        (_http_status_error(404), False, False),
        (RuntimeError("429 Too Many Requests"), True, True),
        (RuntimeError("Service Unavailable"), True, False),
        (UpstreamServiceError("bad request", status_code=400), False, False),
        (ValueError("nope"), False, False),
    ],
)
def test_classifiers(exc, transient, rate_limited):
    assert is_transient_error(exc) is transient
    assert is_rate_limit_error(exc) is rate_limited
