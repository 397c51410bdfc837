"""Fallback to alternative operations on failure."""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from agentloop.exceptions import AllFallbacksFailedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FailureCallback = Callable[[str, BaseException], Any]


async def _notify(callback: Optional[FailureCallback], name: str, error: BaseException) -> None:
    if callback is None:
        return
    result = callback(name, error)
    if inspect.isawaitable(result):
        await result


class Fallback(Generic[T]):
    """Calls a secondary operation when the primary fails.

    The secondary receives the same arguments. If it fails too, the primary's
    error is raised, chained from the secondary's.
    """

    def __init__(
        self,
        secondary: Callable[..., Awaitable[T]],
        on_failure: Optional[FailureCallback] = None,
    ):
        self.secondary = secondary
        self.on_failure = on_failure

    async def execute(self, primary: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        try:
            return await primary(*args, **kwargs)
        except Exception as primary_error:
            logger.warning(f"Primary operation failed, falling back: {primary_error}")
            await _notify(self.on_failure, "primary", primary_error)
            try:
                return await self.secondary(*args, **kwargs)
            except Exception as secondary_error:
                logger.error(f"Fallback operation failed too: {secondary_error}")
                raise primary_error from secondary_error

    def wrap(self, primary: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        async def wrapper(*args, **kwargs):
            return await self.execute(primary, *args, **kwargs)

        return wrapper


@dataclass
class FallbackStep(Generic[T]):
    name: str
    operation: Callable[..., Awaitable[T]]


@dataclass
class ExecutionResult(Generic[T]):
    """Value produced by a fallback chain and which step produced it."""

    value: T
    step_name: str
    attempts: int
    errors: list[str] = field(default_factory=list)


class FallbackChain(Generic[T]):
    """Tries named operations in order until one succeeds.

    Example:
        chain = FallbackChain().add("primary", call_primary).add("cache", read_cache)
        result = await chain.execute(query)
    """

    def __init__(self, on_failure: Optional[FailureCallback] = None):
        self.steps: list[FallbackStep[T]] = []
        self.on_failure = on_failure

    def add(self, name: str, operation: Callable[..., Awaitable[T]]) -> "FallbackChain[T]":
        self.steps.append(FallbackStep(name=name, operation=operation))
        return self

    async def execute(self, *args, **kwargs) -> ExecutionResult[T]:
        """Run steps in order, returning the first success.

        Raises:
            AllFallbacksFailedError: If every step fails
        """
        if not self.steps:
            raise AllFallbacksFailedError(["No fallback steps configured"])

        errors: list[str] = []
        for attempt, step in enumerate(self.steps, start=1):
            try:
                value = await step.operation(*args, **kwargs)
            except Exception as e:
                logger.warning(f"Fallback step '{step.name}' failed: {e}")
                errors.append(f"{step.name}: {e}")
                await _notify(self.on_failure, step.name, e)
                continue

            if attempt > 1:
                logger.info(f"Fallback step '{step.name}' succeeded after {attempt} attempts")
            return ExecutionResult(value=value, step_name=step.name, attempts=attempt, errors=errors)

        raise AllFallbacksFailedError(errors)

    def __len__(self) -> int:
        return len(self.steps)
