"""
Primary-then-fallback model walking for the LiteLLM backend.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from agentloop.providers.exceptions import FailureType, classify_error, should_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ModelAttempt:
    """A model that failed during one request."""

    model: str
    error: Exception
    failure_type: FailureType


class ModelChain:
    """
    Tries a request against the primary model, then each fallback in order.

    A failure moves on to the next model only when a different model could
    succeed (rate limits, outages, unknown errors). Credential and request
    errors end the walk at once. Duplicate models are tried once.
    """

    def __init__(self, primary: str, fallbacks: list[str] | None = None):
        self.models = list(dict.fromkeys([primary, *(fallbacks or [])]))
        self.attempts: list[ModelAttempt] = []

    @property
    def last_model(self) -> str:
        """The model tried most recently, or the primary before any attempt."""
        return self.attempts[-1].model if self.attempts else self.models[0]

    async def run(self, request: Callable[[str], Awaitable[T]]) -> T:
        """
        Call `request(model)` down the chain until one succeeds.

        Args:
            request: Coroutine function performing the call for a model.

        Returns:
            The first successful result.

        Raises:
            Exception: The last model's error, unchanged, when the chain
                ends without a success.
        """
        *fallible, final = self.models
        logger.info(f"Completing with model: {self.models[0]}")

        for model in fallible:
            try:
                result = await request(model)
            except Exception as e:
                if not self._record(model, e):
                    raise
                logger.warning(f"Model {model} failed, trying fallback: {self._next_after(model)}")
                continue
            return self._succeeded(model, result)

        try:
            result = await request(final)
        except Exception as e:
            self._record(final, e)
            if fallible:
                logger.error(f"All models failed. {self.summary()}")
            raise
        return self._succeeded(final, result)

    def _succeeded(self, model: str, result: T) -> T:
        if self.attempts:
            logger.info(f"Fallback model {model} succeeded")
        return result

    def _record(self, model: str, error: Exception) -> bool:
        """Record a failure; True when another model is worth trying."""
        failure_type = classify_error(error)
        self.attempts.append(ModelAttempt(model=model, error=error, failure_type=failure_type))
        if should_retry(failure_type):
            return True
        logger.error(f"Model {model} failed with {failure_type.value}, not falling back: {error}")
        return False

    def _next_after(self, model: str) -> str:
        return self.models[self.models.index(model) + 1]

    def summary(self) -> str:
        """One line per failed model, for logs."""
        if not self.attempts:
            return "No failed attempts"
        lines = [f"  - {a.model}: {a.failure_type.value} ({a.error})" for a in self.attempts]
        return "Model attempts:\n" + "\n".join(lines)
