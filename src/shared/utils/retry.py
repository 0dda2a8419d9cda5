# /src/shared/utils/retry.py
"""
Async retry with exponential backoff + jitter, optionally through a circuit breaker.

- RetryExecutor.execute_with_retry(operation, context, options)
- RetryExecutor.execute_batch_with_retry(items, operation, context, options)

delay(attempt) = min(base + U[0, 0.3 * base], max_delay),
base = initial_delay * multiplier ** (attempt - 1)
"""

from __future__ import annotations

import asyncio
import inspect
import random
from dataclasses import dataclass, field, replace
from functools import partial
from typing import (
    Any,
    Awaitable,
    Callable,
    FrozenSet,
    Generic,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
    Union,
)
from uuid import UUID

import httpx

from src.shared.exceptions import CircuitOpenError, DomainError
from src.shared.infrastructure.observability.logger import get_logger
from src.shared.utils.circuit_breaker import CircuitBreakerRegistry

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

JITTER_RATIO = 0.3

DEFAULT_RETRYABLE_ERRORS: FrozenSet[str] = frozenset(
    {
        "network_error",
        "timeout_error",
        "service_unavailable",
        "rate_limited",
        "provider_unavailable",
    }
)

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})

OnRetry = Callable[[int, BaseException], Any]


@dataclass
class RetryContext:
    """Per-invocation record; attempt counters are filled in by the executor."""
    operation_name: str
    tenant_id: Optional[Union[UUID, str]] = None
    template_id: Optional[Union[UUID, str]] = None
    attempt: int = 0
    max_attempts: int = 0

    def log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"operation": self.operation_name}
        if self.tenant_id is not None:
            fields["tenant_id"] = str(self.tenant_id)
        if self.template_id is not None:
            fields["template_id"] = str(self.template_id)
        return fields


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    retryable_errors: FrozenSet[str] = DEFAULT_RETRYABLE_ERRORS
    on_retry: Optional[OnRetry] = None
    circuit_breaker: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "RetryOptions":
        values: dict[str, Any] = {
            "max_attempts": settings.retry_max_attempts,
            "initial_delay_ms": settings.retry_initial_delay_ms,
            "max_delay_ms": settings.retry_max_delay_ms,
            "backoff_multiplier": settings.retry_backoff_multiplier,
        }
        values.update(overrides)
        return cls(**values)

    def with_changes(self, **changes: Any) -> "RetryOptions":
        return replace(self, **changes)


@dataclass
class BatchResult(Generic[T, R]):
    successful: List[Tuple[T, R]] = field(default_factory=list)
    failed: List[Tuple[T, BaseException]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successful) + len(self.failed)


def _retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code <= 599


def is_retryable(error: BaseException, retryable_errors: Iterable[str] = DEFAULT_RETRYABLE_ERRORS) -> bool:
    """
    Classify an error for the retry loop.

    Order matters: an open breaker is never retried, an explicit ``retryable``
    flag wins over everything else, then transport failures, error codes and
    HTTP statuses.
    """
    if isinstance(error, CircuitOpenError):
        return False

    flag = getattr(error, "retryable", None)
    if isinstance(flag, bool):
        return flag

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return _retryable_status(error.response.status_code)

    code = getattr(error, "error_code", None) or getattr(error, "code", None)
    if isinstance(code, str) and code in frozenset(retryable_errors):
        return True

    # DomainError.status_code is our own HTTP mapping, not a provider answer
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and not isinstance(error, DomainError):
        return _retryable_status(status_code)

    return False


class RetryExecutor:
    """
    Runs async operations with bounded retries.

    The final error is propagated unchanged; wrapping it (e.g. into a
    "retries exhausted" error) is the caller's decision.
    """

    def __init__(
        self,
        breakers: Optional[CircuitBreakerRegistry] = None,
        *,
        default_options: Optional[RetryOptions] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._breakers = breakers
        self._default_options = default_options or RetryOptions()
        self._sleep = sleep
        self._rng = rng

    @property
    def default_options(self) -> RetryOptions:
        return self._default_options

    @property
    def breakers(self) -> Optional[CircuitBreakerRegistry]:
        return self._breakers

    @staticmethod
    def base_delay(attempt: int, options: RetryOptions) -> float:
        return options.initial_delay_ms * options.backoff_multiplier ** (attempt - 1)

    def compute_delay(self, attempt: int, options: Optional[RetryOptions] = None) -> float:
        """Delay in milliseconds before the attempt following ``attempt``."""
        options = options or self._default_options
        base = self.base_delay(attempt, options)
        jitter = self._rng() * JITTER_RATIO * base
        return min(base + jitter, options.max_delay_ms)

    def is_retryable(self, error: BaseException, options: Optional[RetryOptions] = None) -> bool:
        options = options or self._default_options
        return is_retryable(error, options.retryable_errors)

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        context: RetryContext,
        options: Optional[RetryOptions] = None,
    ) -> T:
        options = options or self._default_options
        breaker = None
        if options.circuit_breaker:
            if self._breakers is None:
                raise ValueError(f"No circuit breaker registry configured for '{options.circuit_breaker}'")
            breaker = self._breakers.get(options.circuit_breaker)

        context.max_attempts = options.max_attempts
        attempt = 0
        while True:
            attempt += 1
            context.attempt = attempt
            try:
                if breaker is not None:
                    result = await breaker.call(operation)
                else:
                    result = await operation()
            except Exception as exc:
                retryable = is_retryable(exc, options.retryable_errors)
                if not retryable or attempt >= options.max_attempts:
                    logger.error(
                        "retry_gave_up",
                        attempts=attempt,
                        max_attempts=options.max_attempts,
                        retryable=retryable,
                        error_type=exc.__class__.__name__,
                        error=str(exc),
                        **context.log_fields(),
                    )
                    raise

                delay_ms = self.compute_delay(attempt, options)
                logger.warning(
                    "retry_scheduled",
                    attempt=attempt,
                    max_attempts=options.max_attempts,
                    delay_ms=round(delay_ms, 1),
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                    **context.log_fields(),
                )
                await self._notify_on_retry(options.on_retry, attempt, exc, context)
                await self._sleep(delay_ms / 1000.0)
                continue

            if attempt > 1:
                logger.info("retry_succeeded", attempts=attempt, **context.log_fields())
            return result

    async def execute_batch_with_retry(
        self,
        items: Iterable[T],
        operation: Callable[[T], Awaitable[R]],
        context: RetryContext,
        options: Optional[RetryOptions] = None,
    ) -> BatchResult[T, R]:
        """Run ``operation`` for every item independently; one item's failure never stops the batch."""
        batch: BatchResult[T, R] = BatchResult()
        for index, item in enumerate(items):
            item_context = replace(
                context,
                operation_name=f"{context.operation_name}[{index}]",
                attempt=0,
                max_attempts=0,
            )
            try:
                result = await self.execute_with_retry(partial(operation, item), item_context, options)
            except Exception as exc:
                batch.failed.append((item, exc))
            else:
                batch.successful.append((item, result))

        logger.info(
            "retry_batch_completed",
            total=batch.total,
            successful=len(batch.successful),
            failed=len(batch.failed),
            **context.log_fields(),
        )
        return batch

    async def _notify_on_retry(
        self,
        hook: Optional[OnRetry],
        attempt: int,
        error: BaseException,
        context: RetryContext,
    ) -> None:
        if hook is None:
            return
        try:
            outcome = hook(attempt, error)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("retry_hook_failed", attempt=attempt, **context.log_fields())
