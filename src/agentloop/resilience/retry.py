"""Retry policies with pluggable backoff."""

import asyncio
import functools
import inspect
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from agentloop.exceptions import RateLimitExceededError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Backoff(ABC):
    """Computes the delay before the next attempt."""

    @abstractmethod
    def delay(self, attempt: int) -> float:
        """Delay in seconds after the given (1-based) failed attempt."""
        pass


@dataclass(frozen=True)
class FixedBackoff(Backoff):
    seconds: float = 1.0

    def delay(self, attempt: int) -> float:
        return self.seconds


@dataclass(frozen=True)
class LinearBackoff(Backoff):
    initial: float = 1.0
    increment: float = 1.0
    max_delay: float = 60.0

    def delay(self, attempt: int) -> float:
        return min(self.max_delay, self.initial + self.increment * (attempt - 1))


@dataclass(frozen=True)
class ExponentialBackoff(Backoff):
    """Delay grows by `multiplier` per attempt, capped at `max_delay`.

    `jitter` is a fraction: 0.1 spreads each delay by up to 10% either way.
    """

    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0
    jitter: float = 0.0

    def delay(self, attempt: int) -> float:
        delay = min(self.max_delay, self.base_delay * self.multiplier ** (attempt - 1))
        if self.jitter:
            delay *= 1 + random.uniform(-self.jitter, self.jitter)
        return max(0.0, delay)


@dataclass(frozen=True)
class ImmediateBackoff(Backoff):
    def delay(self, attempt: int) -> float:
        return 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retries a failing coroutine with backoff.

    `max_attempts` counts every attempt, the first included. When attempts
    run out the last error is raised unchanged. Errors rejected by
    `should_retry` are raised immediately.
    """

    max_attempts: int = 3
    backoff: Backoff = ExponentialBackoff()
    should_retry: Callable[[BaseException], bool] = is_retryable
    on_retry: Optional[Callable[[int, BaseException], Any]] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1, backoff=ImmediateBackoff())

    @classmethod
    def standard(cls) -> "RetryPolicy":
        return cls(max_attempts=3, backoff=ExponentialBackoff(base_delay=1.0, multiplier=2.0, max_delay=60.0))

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        return cls(
            max_attempts=5,
            backoff=ExponentialBackoff(base_delay=0.5, multiplier=2.0, max_delay=30.0, jitter=0.1),
        )

    async def execute(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run an operation, retrying on failure.

        Args:
            operation: Coroutine function to call
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            The operation's result

        Raises:
            Exception: The last error once attempts are exhausted, or the
                first non-retryable error
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_attempts:
                    if self.max_attempts > 1:
                        logger.error(f"Giving up after {attempt} attempts: {e}")
                    raise
                if not self.should_retry(e):
                    logger.info(f"Not retrying non-retryable error: {e}")
                    raise

                delay = self.backoff.delay(attempt)
                if isinstance(e, RateLimitExceededError) and e.retry_after is not None:
                    delay = e.retry_after

                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                if self.on_retry is not None:
                    callback_result = self.on_retry(attempt, e)
                    if inspect.isawaitable(callback_result):
                        await callback_result
                await asyncio.sleep(delay)

    def wrap(self, operation: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Return a coroutine function that runs `operation` under this policy."""

        @functools.wraps(operation)
        async def wrapper(*args, **kwargs):
            return await self.execute(operation, *args, **kwargs)

        return wrapper
