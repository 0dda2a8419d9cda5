# /src/shared/utils/circuit_breaker.py
"""
Circuit breaker for calls to external dependencies.

One breaker per dependency name (e.g. "provider-submit"), shared by every
caller in the process. Breakers live in an explicit CircuitBreakerRegistry
owned by the composition root, not in a module-level global.

States:
    CLOSED    calls pass; counted failures accumulate
    OPEN      calls are rejected with CircuitOpenError without running
    HALF_OPEN a single trial call is let through to test recovery
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar

from src.shared.exceptions import CircuitOpenError
from src.shared.infrastructure.observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
ExcTuple = Tuple[Type[BaseException], ...]


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if the dependency recovered


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Read-only view of a breaker, for health endpoints and tests."""
    name: str
    state: CircuitState
    consecutive_failures: int
    last_failure_time: Optional[float]
    failure_threshold: int
    reset_timeout: float


class CircuitBreaker:
    """
    Three-state circuit breaker guarding an async dependency.

    Only exceptions matching ``failure_exceptions`` count as failures. Any
    other exception means the dependency did answer (for example with a
    definitive rejection) and is booked as a success before it propagates.

    State checks and updates run under an asyncio.Lock; the lock is never held
    while the guarded operation runs. Every state change bumps a generation
    counter; an outcome is only booked against the state that admitted the
    call, so a slow call admitted while CLOSED cannot close a HALF_OPEN circuit.
    """

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        failure_exceptions: ExcTuple = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            name: Dependency name, used in logs and CircuitOpenError
            failure_threshold: Consecutive failures that open the circuit
            reset_timeout: Seconds after the last failure before a trial call
            failure_exceptions: Exception types that count as failures
            clock: Monotonic time source in seconds
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if reset_timeout <= 0:
            raise ValueError("reset_timeout must be > 0")

        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failure_exceptions = tuple(failure_exceptions)
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: Optional[float] = None
        self._trial_in_flight = False
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_failure_time(self) -> Optional[float]:
        return self._last_failure_time

    def snapshot(self) -> CircuitBreakerSnapshot:
        return CircuitBreakerSnapshot(
            name=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            last_failure_time=self._last_failure_time,
            failure_threshold=self.failure_threshold,
            reset_timeout=self.reset_timeout,
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run ``func`` under breaker protection.

        Raises:
            CircuitOpenError: circuit is OPEN, or a HALF_OPEN trial is already running
        """
        generation, is_trial = await self._before_call()

        try:
            result = await func(*args, **kwargs)
        except self.failure_exceptions as exc:
            await self._on_failure(exc, generation, is_trial)
            raise
        except Exception:
            await self._on_success(generation, is_trial)
            raise
        except BaseException:
            # cancelled mid-call: free the trial slot, leave counters alone
            if is_trial:
                async with self._lock:
                    if generation == self._generation:
                        self._trial_in_flight = False
            raise

        await self._on_success(generation, is_trial)
        return result

    def reset(self) -> None:
        """Force the circuit CLOSED regardless of history (operator override)."""
        previous = self._state
        self._state = CircuitState.CLOSED
        self._generation += 1
        self._consecutive_failures = 0
        self._last_failure_time = None
        self._trial_in_flight = False
        logger.info("circuit_breaker_reset", circuit=self.name, previous_state=previous.value)

    # ─────────────────────────── internals ───────────────────────────

    async def _before_call(self) -> Tuple[int, bool]:
        """Admit a call; returns the admitting generation and whether it is the trial."""
        async with self._lock:
            if self._state is CircuitState.OPEN:
                elapsed = self._elapsed_since_failure()
                if elapsed >= self.reset_timeout:
                    self._transition(CircuitState.HALF_OPEN)
                else:
                    raise CircuitOpenError(self.name, retry_in_seconds=self.reset_timeout - elapsed)

            if self._state is CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitOpenError(self.name)
                self._trial_in_flight = True
                return self._generation, True

            return self._generation, False

    async def _on_success(self, generation: int, is_trial: bool) -> None:
        async with self._lock:
            if generation != self._generation:
                logger.debug("circuit_breaker_stale_outcome", circuit=self.name, outcome="success")
                return
            if is_trial:
                self._trial_in_flight = False
                self._transition(CircuitState.CLOSED)
            self._consecutive_failures = 0

    async def _on_failure(self, exc: BaseException, generation: int, is_trial: bool) -> None:
        async with self._lock:
            if generation != self._generation:
                logger.debug("circuit_breaker_stale_outcome", circuit=self.name, outcome="failure")
                return
            self._last_failure_time = self._clock()

            if is_trial:
                self._trial_in_flight = False
                self._consecutive_failures = self.failure_threshold
                self._transition(CircuitState.OPEN)
                logger.error(
                    "circuit_breaker_trial_failed",
                    circuit=self.name,
                    error_type=exc.__class__.__name__,
                )
                return

            self._consecutive_failures += 1
            if self._consecutive_failures >= self.failure_threshold:
                self._transition(CircuitState.OPEN)
                logger.error(
                    "circuit_breaker_opened",
                    circuit=self.name,
                    consecutive_failures=self._consecutive_failures,
                    error_type=exc.__class__.__name__,
                )

    def _elapsed_since_failure(self) -> float:
        if self._last_failure_time is None:
            return float("inf")
        return self._clock() - self._last_failure_time

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        logger.info(
            "circuit_breaker_state_changed",
            circuit=self.name,
            from_state=self._state.value,
            to_state=new_state.value,
        )
        self._state = new_state
        self._generation += 1


class CircuitBreakerRegistry:
    """
    Name → breaker mapping, created at the process composition root and passed
    to whoever builds a RetryExecutor.

    Breakers are created lazily on first use of a name with the registry's
    defaults and live for the lifetime of the registry.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        failure_exceptions: ExcTuple = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failure_exceptions = tuple(failure_exceptions)
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name,
                failure_threshold=self.failure_threshold,
                reset_timeout=self.reset_timeout,
                failure_exceptions=self.failure_exceptions,
                clock=self._clock,
            )
            self._breakers[name] = breaker
            logger.debug("circuit_breaker_created", circuit=name)
        return breaker

    def __contains__(self, name: object) -> bool:
        return name in self._breakers

    def names(self) -> list[str]:
        return sorted(self._breakers)

    def reset(self, name: str) -> None:
        breaker = self._breakers.get(name)
        if breaker is not None:
            breaker.reset()

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def snapshot(self) -> Dict[str, CircuitBreakerSnapshot]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}
