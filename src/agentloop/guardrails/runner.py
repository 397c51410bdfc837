"""Execution of guardrail lists."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from agentloop.exceptions import (
    GuardrailExecutionError,
    GuardrailTripwireError,
    InputTripwireError,
    OutputTripwireError,
    ToolInputTripwireError,
    ToolOutputTripwireError,
)
from agentloop.guardrails.base import Guardrail, GuardrailResult, ToolGuardrailData

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardrailCheck:
    """A guardrail paired with the result it produced."""

    guardrail_name: str
    result: GuardrailResult


class GuardrailRunner:
    """Runs guardrails and converts tripwires into errors.

    Sequential mode runs guardrails in order and, with
    `stop_on_first_tripwire`, stops at the first one that trips.
    Parallel mode runs all of them concurrently.
    """

    def __init__(self, run_in_parallel: bool = False, stop_on_first_tripwire: bool = True):
        self.run_in_parallel = run_in_parallel
        self.stop_on_first_tripwire = stop_on_first_tripwire

    async def run(self, guardrails: Sequence[Guardrail], payload: Any) -> list[GuardrailCheck]:
        """Run guardrails against a payload without raising on tripwires.

        Args:
            guardrails: Guardrails to run
            payload: Value handed to each guardrail

        Returns:
            One GuardrailCheck per guardrail that ran

        Raises:
            GuardrailExecutionError: If a guardrail itself raises
        """
        if not guardrails:
            return []

        if self.run_in_parallel:
            results = await asyncio.gather(
                *[self._run_one(guardrail, payload) for guardrail in guardrails]
            )
            return list(results)

        checks = []
        for guardrail in guardrails:
            check = await self._run_one(guardrail, payload)
            checks.append(check)
            if check.result.tripwire_triggered and self.stop_on_first_tripwire:
                break
        return checks

    async def run_input(self, guardrails: Sequence[Guardrail], input: str) -> list[GuardrailCheck]:
        """Run input guardrails; raises InputTripwireError on a tripwire."""
        return await self._run_and_raise(
            guardrails,
            input,
            lambda check: InputTripwireError(
                check.guardrail_name, check.result.message, check.result.output_info
            ),
        )

    async def run_output(
        self, guardrails: Sequence[Guardrail], output: str, agent_name: str
    ) -> list[GuardrailCheck]:
        """Run output guardrails; raises OutputTripwireError on a tripwire."""
        return await self._run_and_raise(
            guardrails,
            output,
            lambda check: OutputTripwireError(
                check.guardrail_name, agent_name, check.result.message, check.result.output_info
            ),
        )

    async def run_tool_input(
        self, guardrails: Sequence[Guardrail], data: ToolGuardrailData
    ) -> list[GuardrailCheck]:
        """Run tool input guardrails; raises ToolInputTripwireError on a tripwire."""
        return await self._run_and_raise(
            guardrails,
            data,
            lambda check: ToolInputTripwireError(
                check.guardrail_name, data.tool_name, check.result.message, check.result.output_info
            ),
        )

    async def run_tool_output(
        self, guardrails: Sequence[Guardrail], data: ToolGuardrailData
    ) -> list[GuardrailCheck]:
        """Run tool output guardrails; raises ToolOutputTripwireError on a tripwire."""
        return await self._run_and_raise(
            guardrails,
            data,
            lambda check: ToolOutputTripwireError(
                check.guardrail_name, data.tool_name, check.result.message, check.result.output_info
            ),
        )

    async def _run_and_raise(
        self,
        guardrails: Sequence[Guardrail],
        payload: Any,
        make_error: Callable[[GuardrailCheck], GuardrailTripwireError],
    ) -> list[GuardrailCheck]:
        checks = await self.run(guardrails, payload)
        for check in checks:
            if check.result.tripwire_triggered:
                logger.warning(
                    f"Guardrail '{check.guardrail_name}' triggered: {check.result.message}"
                )
                raise make_error(check)
        return checks

    async def _run_one(self, guardrail: Guardrail, payload: Any) -> GuardrailCheck:
        try:
            result = await guardrail.validate(payload)
        except GuardrailTripwireError:
            raise
        except Exception as e:
            logger.error(f"Guardrail '{guardrail.name}' failed: {e}", exc_info=True)
            raise GuardrailExecutionError(guardrail.name, str(e)) from e
        return GuardrailCheck(guardrail_name=guardrail.name, result=result)
