"""Circuit breaker for failing dependencies."""

import asyncio
import functools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

from agentloop.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """State of a circuit breaker."""

    CLOSED = "closed"  # Calls pass through
    OPEN = "open"  # Calls rejected without invoking
    HALF_OPEN = "half_open"  # Limited trial calls allowed


@dataclass(frozen=True)
class CircuitBreakerStatistics:
    """Point-in-time view of a breaker."""

    name: str
    state: CircuitState
    consecutive_failures: int
    total_calls: int
    total_failures: int
    total_rejections: int
    opened_at: Optional[float]


class CircuitBreaker:
    """Stops calling a dependency after repeated failures.

    Transitions:
    - closed -> open after `failure_threshold` consecutive failures
    - open -> half_open once `reset_timeout` has elapsed
    - half_open -> closed after `success_threshold` trial successes
    - half_open -> open on any trial failure, restarting the timeout
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        success_threshold: int = 1,
        half_open_max_requests: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the breaker.

        Args:
            name: Service name reported in errors
            failure_threshold: Consecutive failures that open the circuit
            reset_timeout: Seconds to stay open before probing
            success_threshold: Trial successes needed to close
            half_open_max_requests: Concurrent trial calls allowed while half open
            clock: Monotonic time source
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if success_threshold < 1:
            raise ValueError("success_threshold must be at least 1")
        if half_open_max_requests < 1:
            raise ValueError("half_open_max_requests must be at least 1")

        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.success_threshold = success_threshold
        self.half_open_max_requests = half_open_max_requests
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        self._opened_at: Optional[float] = None
        self._total_calls = 0
        self._total_failures = 0
        self._total_rejections = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def opened_at(self) -> Optional[float]:
        return self._opened_at

    def statistics(self) -> CircuitBreakerStatistics:
        return CircuitBreakerStatistics(
            name=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            total_calls=self._total_calls,
            total_failures=self._total_failures,
            total_rejections=self._total_rejections,
            opened_at=self._opened_at,
        )

    async def execute(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run an operation through the breaker.

        Raises:
            CircuitBreakerOpenError: If the circuit is open; the operation
                is not invoked
        """
        await self._before_call()
        try:
            result = await operation(*args, **kwargs)
        except asyncio.CancelledError:
            await self._release_trial()
            raise
        except Exception:
            await self._record_failure()
            raise
        await self._record_success()
        return result

    def wrap(self, operation: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(operation)
        async def wrapper(*args, **kwargs):
            return await self.execute(operation, *args, **kwargs)

        return wrapper

    async def reset(self) -> None:
        """Force the breaker closed and clear its counters."""
        async with self._lock:
            self._close()
        logger.info(f"Circuit breaker '{self.name}' reset")

    async def trip(self) -> None:
        """Force the breaker open."""
        async with self._lock:
            self._open()

    async def _before_call(self) -> None:
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._clock() - self._opened_at >= self.reset_timeout:
                    self._state = CircuitState.HALF_OPEN
                    self._half_open_successes = 0
                    self._half_open_in_flight = 0
                    logger.info(f"Circuit breaker '{self.name}' half open, probing")
                else:
                    self._total_rejections += 1
                    raise CircuitBreakerOpenError(self.name)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight >= self.half_open_max_requests:
                    self._total_rejections += 1
                    raise CircuitBreakerOpenError(self.name)
                self._half_open_in_flight += 1

            self._total_calls += 1

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
                self._half_open_successes += 1
                if self._half_open_successes >= self.success_threshold:
                    self._close()
                    logger.info(f"Circuit breaker '{self.name}' closed")
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures = 0

    async def _record_failure(self) -> None:
        async with self._lock:
            self._total_failures += 1
            if self._state == CircuitState.HALF_OPEN:
                self._open()
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures += 1
                if self._consecutive_failures >= self.failure_threshold:
                    self._open()

    async def _release_trial(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        logger.warning(
            f"Circuit breaker '{self.name}' opened after "
            f"{self._consecutive_failures} consecutive failures"
        )

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._half_open_successes = 0
        self._half_open_in_flight = 0
        self._opened_at = None

    def __repr__(self) -> str:
        return f"<CircuitBreaker name={self.name} state={self._state.value}>"


class CircuitBreakerRegistry:
    """Hands out one shared breaker per service name."""

    def __init__(self, **defaults):
        """Initialize the registry.

        Args:
            **defaults: Keyword arguments for breakers created on demand
        """
        self._defaults = defaults
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str, **overrides) -> CircuitBreaker:
        """Get the breaker for a service, creating it on first use."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name=name, **{**self._defaults, **overrides})
                self._breakers[name] = breaker
            return breaker

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._breakers.pop(name, None) is not None

    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    async def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            await breaker.reset()

    def __len__(self) -> int:
        return len(self._breakers)
