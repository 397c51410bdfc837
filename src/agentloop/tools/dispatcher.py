"""Concurrent execution of tool-call batches."""

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Sequence

from agentloop.exceptions import ToolExecutionFailedError, ToolNotFoundError
from agentloop.tools.models import ToolCall, ToolExecutionResult
from agentloop.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from agentloop.agent.hooks import RunHooks

logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    """How a batch reports failed calls."""

    FAIL_FAST = "fail_fast"  # Raise the first failure in call order
    COLLECT_ERRORS = "collect_errors"  # Raise one error naming every failure
    CONTINUE_ON_ERROR = "continue_on_error"  # Return failures as results


class ParallelToolDispatcher:
    """Runs a batch of tool calls concurrently.

    Results always come back in call order, one per call, whatever order the
    calls finish in. Every call runs to completion; a failing call never
    cancels its siblings.
    """

    def __init__(
        self,
        policy: FailurePolicy = FailurePolicy.CONTINUE_ON_ERROR,
        max_concurrency: Optional[int] = None,
    ):
        """Initialize the dispatcher.

        Args:
            policy: Default failure policy
            max_concurrency: Optional cap on calls in flight at once
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.policy = policy
        self.max_concurrency = max_concurrency

    async def dispatch(
        self,
        calls: Sequence[ToolCall],
        registry: ToolRegistry,
        policy: Optional[FailurePolicy] = None,
        hooks: Optional["RunHooks"] = None,
        agent: Any = None,
    ) -> list[ToolExecutionResult]:
        """Execute tool calls concurrently.

        Args:
            calls: Tool calls to execute
            registry: Registry the tools are looked up in
            policy: Failure policy override for this batch
            hooks: Optional lifecycle hooks notified per call
            agent: Agent reported to hooks

        Returns:
            One result per call, in call order

        Raises:
            ToolNotFoundError: If any call names an unknown tool; nothing runs
            ToolExecutionFailedError: Under FAIL_FAST or COLLECT_ERRORS when a call fails
        """
        policy = policy or self.policy
        if not calls:
            return []

        tools = registry.snapshot()
        for call in calls:
            if call.name not in tools:
                logger.warning(f"Rejecting batch: tool not found: {call.name}")
                raise ToolNotFoundError(call.name)

        logger.info(f"Dispatching {len(calls)} tool calls")
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None

        async def run_one(index: int, call: ToolCall) -> tuple[int, ToolExecutionResult]:
            if semaphore is None:
                return index, await self._execute_call(call, registry, hooks, agent)
            async with semaphore:
                return index, await self._execute_call(call, registry, hooks, agent)

        tasks = [asyncio.create_task(run_one(i, call)) for i, call in enumerate(calls)]
        indexed: list[tuple[int, ToolExecutionResult]] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                indexed.append(await next_done)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        indexed.sort(key=lambda pair: pair[0])
        results = [result for _, result in indexed]

        failures = [r for r in results if not r.is_success]
        if failures and policy == FailurePolicy.FAIL_FAST:
            raise failures[0].error
        if failures and policy == FailurePolicy.COLLECT_ERRORS:
            raise ToolExecutionFailedError(
                "parallel_execution",
                f"Multiple tools failed: {'; '.join(r.error_message or '' for r in failures)}",
                errors=[r.error for r in failures],
            )
        return results

    async def _execute_call(
        self,
        call: ToolCall,
        registry: ToolRegistry,
        hooks: Optional["RunHooks"],
        agent: Any,
    ) -> ToolExecutionResult:
        if hooks is not None:
            await hooks.on_tool_start(agent, call)

        start = time.perf_counter()
        try:
            value = await registry.execute(call.name, call.arguments)
            result = ToolExecutionResult.success(
                call.name, call.arguments, value, time.perf_counter() - start, call.id
            )
        except Exception as e:
            logger.warning(f"Tool '{call.name}' failed: {e}")
            result = ToolExecutionResult.failure(
                call.name, call.arguments, e, time.perf_counter() - start, call.id
            )
            if hooks is not None:
                await hooks.on_error(agent, e)

        if hooks is not None:
            await hooks.on_tool_end(agent, call, result)
        return result
