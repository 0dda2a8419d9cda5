import asyncio

import httpx
import pytest

from src.shared.exceptions import CircuitOpenError, ServiceUnavailableError
from src.shared.utils.circuit_breaker import CircuitBreakerRegistry, CircuitState
from src.shared.utils.retry import RetryContext, RetryExecutor, RetryOptions, is_retryable
from src.templates.domain.exceptions import (
    ProviderError,
    ProviderRejectedError,
    RetriesExhaustedError,
    TransientProviderError,
)


def _flaky(failures, error_factory=lambda: TransientProviderError("provider hiccup")):
    calls = []

    async def op():
        calls.append(1)
        if len(calls) <= failures:
            raise error_factory()
        return "ok"

    return op, calls


async def test_fail_fail_succeed_returns_result(retry_executor, sleeps):
    op, calls = _flaky(2)
    context = RetryContext("op")

    assert await retry_executor.execute_with_retry(op, context) == "ok"
    assert len(calls) == 3
    assert sleeps.calls == [1.0, 2.0]
    assert (context.attempt, context.max_attempts) == (3, 3)


async def test_always_failing_propagates_final_error(retry_executor, sleeps):
    error = TransientProviderError("still down")
    calls = []

    async def op():
        calls.append(1)
        raise error

    with pytest.raises(TransientProviderError) as exc:
        await retry_executor.execute_with_retry(op, RetryContext("op"))
    assert exc.value is error
    assert len(calls) == 3
    assert len(sleeps.calls) == 2


async def test_non_retryable_error_is_not_retried(retry_executor, sleeps):
    op, calls = _flaky(5, lambda: ProviderRejectedError("bad content"))
    with pytest.raises(ProviderRejectedError):
        await retry_executor.execute_with_retry(op, RetryContext("op"))
    assert len(calls) == 1
    assert sleeps.calls == []


async def test_circuit_open_error_is_never_retried(retry_executor):
    op, calls = _flaky(5, lambda: CircuitOpenError("provider-submit"))
    with pytest.raises(CircuitOpenError):
        await retry_executor.execute_with_retry(op, RetryContext("op"))
    assert len(calls) == 1


async def test_cancellation_propagates_without_retry(retry_executor, sleeps):
    op, calls = _flaky(5, asyncio.CancelledError)
    with pytest.raises(asyncio.CancelledError):
        await retry_executor.execute_with_retry(op, RetryContext("op"))
    assert len(calls) == 1
    assert sleeps.calls == []


async def test_on_retry_hook_sync_and_async(retry_executor):
    seen = []

    def sync_hook(attempt, error):
        seen.append(("sync", attempt, type(error).__name__))

    async def async_hook(attempt, error):
        seen.append(("async", attempt, type(error).__name__))

    op, _ = _flaky(1)
    await retry_executor.execute_with_retry(op, RetryContext("op"), RetryOptions(on_retry=sync_hook))
    op, _ = _flaky(1)
    await retry_executor.execute_with_retry(op, RetryContext("op"), RetryOptions(on_retry=async_hook))

    assert seen == [("sync", 1, "TransientProviderError"), ("async", 1, "TransientProviderError")]


async def test_failing_hook_does_not_change_control_flow(retry_executor):
    def hook(attempt, error):
        raise RuntimeError("hook broke")

    op, calls = _flaky(2)
    assert await retry_executor.execute_with_retry(op, RetryContext("op"), RetryOptions(on_retry=hook)) == "ok"
    assert len(calls) == 3


def test_delay_grows_and_is_capped():
    executor = RetryExecutor(rng=lambda: 1.0)
    options = RetryOptions(initial_delay_ms=1000, max_delay_ms=10000, backoff_multiplier=2)
    delays = [executor.compute_delay(attempt, options) for attempt in range(1, 7)]

    assert delays[:3] == [1300.0, 2600.0, 5200.0]
    assert delays == sorted(delays)
    assert max(delays) == 10000
    assert [RetryExecutor.base_delay(a, options) for a in range(1, 4)] == [1000, 2000, 4000]


def test_jitter_is_at_most_thirty_percent():
    executor = RetryExecutor(rng=lambda: 0.5)
    assert executor.compute_delay(1, RetryOptions(initial_delay_ms=1000)) == 1150.0


class _StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class _CodedError(Exception):
    def __init__(self, error_code):
        super().__init__(error_code)
        self.error_code = error_code


def _http_status_error(status_code):
    request = httpx.Request("GET", "https://provider.test")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


@pytest.mark.parametrize(
    "error, expected",
    [
        (TimeoutError(), True),
        (ConnectionError(), True),
        (httpx.ConnectTimeout("slow"), True),
        (httpx.ConnectError("refused"), True),
        (TransientProviderError("x", code="rate_limited"), True),
        (ServiceUnavailableError("x"), True),
        (_StatusError(503), True),
        (_StatusError(599), True),
        (_StatusError(429), True),
        (_StatusError(404), False),
        (_CodedError("network_error"), True),
        (_CodedError("validation_error"), False),
        (_http_status_error(502), True),
        (_http_status_error(400), False),
        (ProviderError("auth", code="provider_auth_error"), False),
        (ProviderRejectedError("bad content"), False),
        (CircuitOpenError("provider-submit"), False),
        (RetriesExhaustedError("op", 3, TimeoutError()), False),
        (ValueError("bug"), False),
    ],
)
def test_error_classification(error, expected):
    assert is_retryable(error) is expected


async def test_attempts_run_through_named_breaker(clock, sleeps):
    breakers = CircuitBreakerRegistry(failure_threshold=2, clock=clock)
    executor = RetryExecutor(breakers, sleep=sleeps, rng=lambda: 0.0)
    op, calls = _flaky(10)

    with pytest.raises(CircuitOpenError):
        await executor.execute_with_retry(op, RetryContext("op"), RetryOptions(circuit_breaker="svc"))

    assert len(calls) == 2
    assert breakers.get("svc").state is CircuitState.OPEN


async def test_named_breaker_requires_registry():
    op, _ = _flaky(0)
    with pytest.raises(ValueError):
        await RetryExecutor().execute_with_retry(op, RetryContext("op"), RetryOptions(circuit_breaker="svc"))


async def test_batch_isolates_failures(retry_executor):
    rejected = ProviderRejectedError("no")

    async def op(item):
        if item == 2:
            raise rejected
        return item * 10

    result = await retry_executor.execute_batch_with_retry([1, 2, 3], op, RetryContext("batch"))

    assert result.successful == [(1, 10), (3, 30)]
    assert result.failed == [(2, rejected)]
    assert result.total == 3


def test_options_from_settings():
    class _Settings:
        retry_max_attempts = 5
        retry_initial_delay_ms = 200
        retry_max_delay_ms = 3000
        retry_backoff_multiplier = 3.0

    options = RetryOptions.from_settings(_Settings(), circuit_breaker="provider-poll")
    assert (options.max_attempts, options.initial_delay_ms, options.max_delay_ms) == (5, 200, 3000)
    assert options.backoff_multiplier == 3.0
    assert options.circuit_breaker == "provider-poll"


def test_options_reject_nonsense():
    with pytest.raises(ValueError):
        RetryOptions(max_attempts=0)
