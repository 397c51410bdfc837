"""Lifecycle hooks for agent runs."""

import asyncio
import inspect
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from agentloop.agent.models import AgentEvent, EventType
from agentloop.exceptions import GuardrailTripwireError
from agentloop.providers.models import ToolCallPartial
from agentloop.tools.models import ToolCall, ToolExecutionResult

if TYPE_CHECKING:
    from agentloop.agent.models import AgentResult

logger = logging.getLogger(__name__)


class RunHooks:
    """Callbacks invoked during a run.

    Every method is a no-op; override the ones you need.
    """

    async def on_agent_start(self, agent: Any, input: str) -> None:
        pass

    async def on_agent_end(self, agent: Any, result: "AgentResult") -> None:
        pass

    async def on_error(self, agent: Any, error: BaseException) -> None:
        pass

    async def on_handoff(self, from_agent: Any, to_agent: Any) -> None:
        pass

    async def on_iteration_start(self, agent: Any, iteration: int) -> None:
        pass

    async def on_iteration_end(self, agent: Any, iteration: int) -> None:
        pass

    async def on_llm_start(self, agent: Any, prompt: str) -> None:
        pass

    async def on_llm_end(self, agent: Any, content: Optional[str]) -> None:
        pass

    async def on_output_token(self, agent: Any, token: str) -> None:
        pass

    async def on_tool_call_partial(self, agent: Any, update: ToolCallPartial) -> None:
        pass

    async def on_tool_start(self, agent: Any, call: ToolCall) -> None:
        pass

    async def on_tool_end(self, agent: Any, call: ToolCall, result: ToolExecutionResult) -> None:
        pass

    async def on_guardrail_triggered(self, agent: Any, error: GuardrailTripwireError) -> None:
        pass


class CompositeRunHooks(RunHooks):
    """Fans each callback out to several hooks concurrently.

    A failing hook is logged and never interrupts the run or its siblings.
    """

    def __init__(self, hooks: list[RunHooks]):
        self.hooks = [h for h in hooks if h is not None]

    async def _fan_out(self, method: str, *args: Any) -> None:
        if not self.hooks:
            return
        results = await asyncio.gather(
            *[getattr(hook, method)(*args) for hook in self.hooks],
            return_exceptions=True,
        )
        for hook, result in zip(self.hooks, results):
            if isinstance(result, Exception):
                logger.warning(f"Hook {type(hook).__name__}.{method} failed: {result}")

    async def on_agent_start(self, agent, input):
        await self._fan_out("on_agent_start", agent, input)

    async def on_agent_end(self, agent, result):
        await self._fan_out("on_agent_end", agent, result)

    async def on_error(self, agent, error):
        await self._fan_out("on_error", agent, error)

    async def on_handoff(self, from_agent, to_agent):
        await self._fan_out("on_handoff", from_agent, to_agent)

    async def on_iteration_start(self, agent, iteration):
        await self._fan_out("on_iteration_start", agent, iteration)

    async def on_iteration_end(self, agent, iteration):
        await self._fan_out("on_iteration_end", agent, iteration)

    async def on_llm_start(self, agent, prompt):
        await self._fan_out("on_llm_start", agent, prompt)

    async def on_llm_end(self, agent, content):
        await self._fan_out("on_llm_end", agent, content)

    async def on_output_token(self, agent, token):
        await self._fan_out("on_output_token", agent, token)

    async def on_tool_call_partial(self, agent, update):
        await self._fan_out("on_tool_call_partial", agent, update)

    async def on_tool_start(self, agent, call):
        await self._fan_out("on_tool_start", agent, call)

    async def on_tool_end(self, agent, call, result):
        await self._fan_out("on_tool_end", agent, call, result)

    async def on_guardrail_triggered(self, agent, error):
        await self._fan_out("on_guardrail_triggered", agent, error)


EventCallback = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class EventStreamHooks(RunHooks):
    """Converts hook callbacks into AgentEvent objects.

    Events are handed to `callback`, which may be sync (e.g. a queue's
    `put_nowait`) or async.
    """

    def __init__(self, callback: EventCallback):
        self.callback = callback
        self.iteration = 0

    async def _emit(self, agent: Any, event_type: EventType, message: str = "", **fields: Any) -> None:
        event = AgentEvent(
            event_type=event_type,
            iteration=self.iteration,
            agent_name=getattr(agent, "name", None),
            message=message,
            timestamp=datetime.now().isoformat(),
            **fields,
        )
        try:
            result = self.callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Event callback error: {e}")

    async def on_agent_start(self, agent, input):
        self.iteration = 0
        await self._emit(agent, EventType.AGENT_START, "Agent started", data={"input": input})

    async def on_agent_end(self, agent, result):
        await self._emit(
            agent,
            EventType.AGENT_COMPLETE,
            f"Agent completed after {result.iteration_count} iterations",
            data={"output": result.output, "stopped_reason": result.stopped_reason},
        )

    async def on_error(self, agent, error):
        await self._emit(agent, EventType.AGENT_ERROR, str(error), data={"error_type": type(error).__name__})

    async def on_handoff(self, from_agent, to_agent):
        await self._emit(
            from_agent,
            EventType.HANDOFF,
            f"Handing off to {getattr(to_agent, 'name', to_agent)}",
            data={"target": getattr(to_agent, "name", None)},
        )

    async def on_iteration_start(self, agent, iteration):
        self.iteration = iteration
        await self._emit(agent, EventType.ITERATION_START, f"Starting iteration {iteration}")

    async def on_iteration_end(self, agent, iteration):
        await self._emit(agent, EventType.ITERATION_END, f"Iteration {iteration} completed")

    async def on_llm_start(self, agent, prompt):
        await self._emit(agent, EventType.LLM_START, "Calling model")

    async def on_llm_end(self, agent, content):
        await self._emit(agent, EventType.LLM_END, "Model response received", data={"content": content})

    async def on_output_token(self, agent, token):
        await self._emit(agent, EventType.OUTPUT_TOKEN, token)

    async def on_tool_call_partial(self, agent, update):
        await self._emit(
            agent,
            EventType.TOOL_CALL_PARTIAL,
            update.arguments_fragment,
            tool_name=update.name,
            tool_call_id=update.id,
            data={"index": update.index},
        )

    async def on_tool_start(self, agent, call):
        await self._emit(
            agent,
            EventType.TOOL_START,
            f"Executing tool: {call.name}",
            tool_name=call.name,
            tool_call_id=call.id,
            data={"arguments": call.arguments},
        )

    async def on_tool_end(self, agent, call, result):
        if result.is_success:
            await self._emit(
                agent,
                EventType.TOOL_COMPLETE,
                f"Tool completed: {call.name}",
                tool_name=call.name,
                tool_call_id=call.id,
                data={"output": result.output, "duration": result.duration},
            )
        else:
            await self._emit(
                agent,
                EventType.TOOL_ERROR,
                f"Tool failed: {result.error_message}",
                tool_name=call.name,
                tool_call_id=call.id,
                data={"error": result.error_message, "duration": result.duration},
            )

    async def on_guardrail_triggered(self, agent, error):
        await self._emit(
            agent,
            EventType.GUARDRAIL_TRIGGERED,
            str(error),
            data={"guardrail": error.guardrail_name},
        )
