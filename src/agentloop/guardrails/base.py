"""Guardrail contracts.

A guardrail inspects a payload (agent input, agent output, or a tool's
arguments/result) and either lets it pass or trips a wire that aborts the run.
Guardrail content is supplied by the caller; this module only defines the
shapes the runner and the agent loop rely on.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union


@dataclass(frozen=True)
class GuardrailResult:
    """Outcome of one guardrail check."""

    tripwire_triggered: bool
    message: Optional[str] = None
    output_info: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def passed(cls, metadata: Optional[dict[str, Any]] = None) -> "GuardrailResult":
        return cls(tripwire_triggered=False, metadata=metadata or {})

    @classmethod
    def tripwire(
        cls,
        message: str,
        output_info: Any = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "GuardrailResult":
        return cls(
            tripwire_triggered=True,
            message=message,
            output_info=output_info,
            metadata=metadata or {},
        )


@dataclass(frozen=True)
class ToolGuardrailData:
    """Payload handed to tool guardrails."""

    tool_name: str
    arguments: dict[str, Any]
    output: Any = None


GuardrailHandler = Callable[[Any], Union[GuardrailResult, Awaitable[GuardrailResult]]]


class Guardrail:
    """A named validation check.

    Either pass a handler (sync or async callable) or subclass and override
    `check`. Sync handlers run on a worker thread.
    """

    def __init__(self, name: Optional[str] = None, handler: Optional[GuardrailHandler] = None):
        self._name = name or type(self).__name__
        self._handler = handler

    @property
    def name(self) -> str:
        return self._name

    async def validate(self, payload: Any) -> GuardrailResult:
        """Validate a payload.

        Args:
            payload: Value to inspect

        Returns:
            GuardrailResult describing pass or tripwire
        """
        return await self.check(payload)

    async def check(self, payload: Any) -> GuardrailResult:
        if self._handler is None:
            raise NotImplementedError(f"Guardrail '{self.name}' has no handler")

        if inspect.iscoroutinefunction(self._handler):
            return await self._handler(payload)

        result = await asyncio.to_thread(self._handler, payload)
        if inspect.isawaitable(result):
            return await result
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name}>"


class InputGuardrail(Guardrail):
    """Validates the user input before the agent loop starts."""


class OutputGuardrail(Guardrail):
    """Validates the agent's final output."""


class ToolInputGuardrail(Guardrail):
    """Validates a tool's arguments before its body runs."""

    async def validate(self, payload: ToolGuardrailData) -> GuardrailResult:
        return await self.check(payload)


class ToolOutputGuardrail(Guardrail):
    """Validates a tool's result after its body returns."""

    async def validate(self, payload: ToolGuardrailData) -> GuardrailResult:
        return await self.check(payload)
