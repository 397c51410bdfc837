"""Token bucket rate limiting for provider calls."""

import asyncio
import logging
import time
from typing import Callable

from agentloop.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket rate limiter.

    The bucket starts full. Tokens refill continuously at `refill_rate` per
    second up to `max_tokens`; each call consumes one token by default.

    Example:
        RateLimiter(max_tokens=10, refill_rate=0.5)
        = bursts of 10 calls, then one call every 2 seconds
    """

    def __init__(
        self,
        max_tokens: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the limiter.

        Args:
            max_tokens: Bucket capacity (burst size)
            refill_rate: Tokens added per second
            clock: Monotonic time source
        """
        if max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self._clock = clock
        self._tokens = float(max_tokens)
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(
        cls,
        max_requests_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> "RateLimiter":
        """Limiter allowing `max_requests_per_minute` calls, refilled evenly over a minute."""
        return cls(max_requests_per_minute, max_requests_per_minute / 60.0, clock=clock)

    @property
    def available_tokens(self) -> float:
        """Tokens available right now."""
        self._refill()
        return self._tokens

    async def acquire(self, tokens: int = 1) -> None:
        """Take tokens, sleeping until enough have refilled.

        Cancellation while waiting propagates and consumes nothing.

        Args:
            tokens: Tokens to consume
        """
        self._validate(tokens)
        while True:
            async with self._lock:
                wait = self._take_or_wait(tokens)
            if wait == 0:
                return
            logger.debug(f"Rate limited, waiting {wait:.2f}s for {tokens} token(s)")
            await asyncio.sleep(wait)

    async def try_acquire(self, tokens: int = 1) -> bool:
        """Take tokens if available; never waits."""
        self._validate(tokens)
        async with self._lock:
            return self._take_or_wait(tokens) == 0

    async def check(self, tokens: int = 1) -> None:
        """Take tokens or raise.

        Raises:
            RateLimitExceededError: With `retry_after` set to the refill wait
        """
        self._validate(tokens)
        async with self._lock:
            wait = self._take_or_wait(tokens)
        if wait:
            raise RateLimitExceededError(retry_after=wait)

    async def reset(self) -> None:
        """Refill the bucket to capacity."""
        async with self._lock:
            self._tokens = float(self.max_tokens)
            self._last_refill = self._clock()
        logger.info("Rate limiter reset")

    def _validate(self, tokens: int) -> None:
        if tokens < 1 or tokens > self.max_tokens:
            raise ValueError(f"tokens must be between 1 and {self.max_tokens}")

    def _take_or_wait(self, tokens: int) -> float:
        """Consume tokens and return 0, or return the seconds until they exist."""
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return 0
        return (tokens - self._tokens) / self.refill_rate

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(float(self.max_tokens), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def __repr__(self) -> str:
        return f"<RateLimiter tokens={self._tokens:.1f}/{self.max_tokens} refill_rate={self.refill_rate:g}/s>"
