"""Deadline enforcement for coroutines."""

import asyncio
import contextlib
import functools
import logging
from typing import Awaitable, Callable, TypeVar

from agentloop.exceptions import AgentTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Timeout:
    """Races an operation against a timer.

    The operation and a sleep run as sibling tasks; whichever finishes first
    wins and the other is cancelled.
    """

    def __init__(self, seconds: float, operation_name: str = "Operation"):
        if seconds <= 0:
            raise ValueError("Timeout must be positive")
        self.seconds = seconds
        self.operation_name = operation_name

    async def execute(self, operation: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run an operation under the deadline.

        Raises:
            AgentTimeoutError: If the timer finishes first
        """
        work = asyncio.ensure_future(operation(*args, **kwargs))
        timer = asyncio.ensure_future(asyncio.sleep(self.seconds))
        try:
            done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            timer.cancel()
            raise

        if work in done:
            timer.cancel()
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        logger.warning(f"{self.operation_name} timed out after {self.seconds}s")
        raise AgentTimeoutError(self.seconds, self.operation_name)

    def wrap(self, operation: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(operation)
        async def wrapper(*args, **kwargs):
            return await self.execute(operation, *args, **kwargs)

        return wrapper
