"""Agent execution loop for iterative tool use."""

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncIterator
from typing import Optional, Union

from agentloop.agent.handoff import Handoff, RunnableAgent, as_handoff
from agentloop.agent.history import ConversationHistory, ConversationMessage, MessageRole
from agentloop.agent.hooks import CompositeRunHooks, EventStreamHooks, RunHooks
from agentloop.agent.models import AgentConfig, AgentEvent, AgentResult
from agentloop.agent.session import Session
from agentloop.exceptions import (
    AgentCancelledError,
    AgentTimeoutError,
    GenerationFailedError,
    GuardrailTripwireError,
    InferenceProviderUnavailableError,
    InvalidInputError,
    MaxIterationsExceededError,
    ToolExecutionFailedError,
    ToolNotFoundError,
)
from agentloop.guardrails.base import InputGuardrail, OutputGuardrail
from agentloop.guardrails.runner import GuardrailRunner
from agentloop.providers.base import InferenceOptions, InferenceProvider, ToolCallStreamingProvider
from agentloop.providers.models import (
    FinishReason,
    InferenceResponse,
    OutputChunk,
    TokenUsage,
    ToolCallPartial,
    ToolCallsCompleted,
    UsageUpdate,
)
from agentloop.tools.base import Tool
from agentloop.tools.dispatcher import FailurePolicy, ParallelToolDispatcher
from agentloop.tools.models import ToolCall, ToolExecutionResult, ToolSchema
from agentloop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class _NoopHooks(RunHooks):
    """Stand-in when a run has no hooks attached."""


def tool_error_message(message: str) -> str:
    """Text fed back to the model when a tool fails."""
    return f"[TOOL ERROR] Execution failed: {message}. Please try a different approach or tool."


class AgentLoop:
    """Agent execution loop with tool use.

    Orchestrates iterative interaction between the model and tools:
    1. Build a prompt from the conversation history
    2. Call the model with the available tools
    3. Execute requested tools (concurrently when enabled)
    4. Feed results back into the history
    5. Repeat until the model answers without tool calls or a limit is hit
    """

    def __init__(
        self,
        provider: Optional[InferenceProvider],
        tools: Union[ToolRegistry, list[Tool], None] = None,
        config: Optional[AgentConfig] = None,
        input_guardrails: Optional[list[InputGuardrail]] = None,
        output_guardrails: Optional[list[OutputGuardrail]] = None,
        handoffs: Optional[list[Union[Handoff, RunnableAgent]]] = None,
        hooks: Optional[RunHooks] = None,
        guardrail_runner: Optional[GuardrailRunner] = None,
        dispatcher: Optional[ParallelToolDispatcher] = None,
    ):
        """Initialize agent loop.

        Args:
            provider: Inference backend for model calls
            tools: ToolRegistry, or a list of tools to register
            config: AgentConfig for execution settings
            input_guardrails: Checks run on the input before the loop
            output_guardrails: Checks run on the final output
            handoffs: Agents the model may hand the conversation to
            hooks: Hooks attached to every run
            guardrail_runner: Runner for input and output guardrails
            dispatcher: Tool dispatcher; built from config when omitted
        """
        self.provider = provider
        self.tool_registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools or [])
        self.config = config or AgentConfig()
        self.input_guardrails = input_guardrails or []
        self.output_guardrails = output_guardrails or []
        self.handoffs = [as_handoff(h) for h in handoffs or []]
        self.hooks = hooks
        self.guardrail_runner = guardrail_runner or GuardrailRunner()
        self.dispatcher = dispatcher or ParallelToolDispatcher(
            policy=FailurePolicy.CONTINUE_ON_ERROR,
            max_concurrency=self.config.max_tool_concurrency if self.config.parallel_tool_calls else 1,
        )
        self._cancelled = False

    @property
    def name(self) -> str:
        return self.config.name

    def cancel(self) -> None:
        """Request cancellation; honoured at the next iteration or dispatch."""
        logger.info(f"Cancellation requested for agent '{self.name}'")
        self._cancelled = True

    async def run(
        self,
        input: str,
        session: Optional[Session] = None,
        hooks: Optional[RunHooks] = None,
    ) -> AgentResult:
        """Run the agent loop.

        Args:
            input: User input
            session: Optional session supplying and storing history
            hooks: Optional hooks for this run, in addition to the agent's own

        Returns:
            AgentResult with the final output and execution details

        Raises:
            InvalidInputError: If input is empty
            MaxIterationsExceededError: If no final answer within the iteration budget
            AgentTimeoutError: If the run exceeds its time budget
            AgentCancelledError: If cancel() was called
            AgentError: Backend, guardrail and tool errors as documented
        """
        if not input or not input.strip():
            raise InvalidInputError("Input cannot be empty")

        self._cancelled = False
        run_hooks = self._combine_hooks(hooks)
        logger.info(f"Starting agent '{self.name}'")
        await run_hooks.on_agent_start(self, input)

        try:
            result = await self._run(input, session, run_hooks, time.monotonic())
        except Exception as e:
            logger.error(f"Agent '{self.name}' failed: {e}", exc_info=True)
            await run_hooks.on_error(self, e)
            raise

        await run_hooks.on_agent_end(self, result)
        return result

    async def stream(self, input: str, session: Optional[Session] = None) -> AsyncIterator[AgentEvent]:
        """Run the agent, yielding events as they happen.

        Errors raised by the run are re-raised after the final event.
        """
        queue: asyncio.Queue[Optional[AgentEvent]] = asyncio.Queue()

        async def runner() -> AgentResult:
            try:
                return await self.run(input, session=session, hooks=EventStreamHooks(queue.put_nowait))
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(runner())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    # =========================================================================
    # Loop
    # =========================================================================

    async def _run(
        self,
        input: str,
        session: Optional[Session],
        hooks: RunHooks,
        started_at: float,
    ) -> AgentResult:
        if self.input_guardrails:
            await self._guard(hooks, self.guardrail_runner.run_input(self.input_guardrails, input))

        history = await self._initial_history(input, session)
        options = self._inference_options()
        all_tool_calls: list[ToolCall] = []
        all_tool_results: list[ToolExecutionResult] = []
        usage: Optional[TokenUsage] = None

        iteration = 0
        while iteration < self.config.max_iterations:
            iteration += 1
            logger.info(f"Agent iteration {iteration}/{self.config.max_iterations}")

            self._check_cancelled()
            self._check_timeout(started_at)
            await hooks.on_iteration_start(self, iteration)

            prompt = history.build_prompt()
            schemas = self._tool_schemas()

            await hooks.on_llm_start(self, prompt)
            if not schemas:
                response = InferenceResponse(content=await self._generate(prompt, options, hooks))
            else:
                response = await self._generate_with_tools(prompt, schemas, options, hooks)
            await hooks.on_llm_end(self, response.content)

            if response.usage is not None:
                usage = response.usage if usage is None else usage + response.usage

            if not response.tool_calls:
                await hooks.on_iteration_end(self, iteration)
                if not response.content:
                    raise GenerationFailedError("Model returned no content or tool calls")
                logger.info(f"Agent completed after {iteration} iterations")
                return await self._finish(
                    input, response.content, history, session, hooks, started_at,
                    iteration, all_tool_calls, all_tool_results, usage,
                )

            calls = response.tool_calls
            logger.info(f"Model requested {len(calls)} tool calls")
            history.append(
                ConversationMessage.assistant(
                    response.content or f"Calling tool: {', '.join(c.name for c in calls)}"
                )
            )

            self._check_cancelled()

            handoffs = {h.effective_tool_name: h for h in self.handoffs}
            handoff_index = next((i for i, c in enumerate(calls) if c.name in handoffs), None)
            regular = calls if handoff_index is None else calls[:handoff_index]

            results = await self._execute_tool_calls(regular, hooks)
            all_tool_calls.extend(regular)
            all_tool_results.extend(results)
            await self._record_tool_results(regular, results, history, hooks)

            if handoff_index is not None:
                call = calls[handoff_index]
                if handoff_index + 1 < len(calls):
                    logger.warning(f"Dropping {len(calls) - handoff_index - 1} tool calls after handoff")
                return await self._handoff(
                    handoffs[call.name], call, history, session, hooks, started_at,
                    iteration, all_tool_calls, all_tool_results, usage,
                )

            await hooks.on_iteration_end(self, iteration)

        logger.warning(f"Agent stopped: max iterations ({self.config.max_iterations}) reached")
        raise MaxIterationsExceededError(iteration)

    async def _initial_history(self, input: str, session: Optional[Session]) -> ConversationHistory:
        history = ConversationHistory()
        history.append(ConversationMessage.system(self.config.system_message))

        if session is not None:
            for item in await session.get_items(limit=self.config.session_history_limit):
                if item.role == MessageRole.TOOL and not item.tool_name:
                    item = ConversationMessage.tool_result("previous", item.content)
                history.append(item)

        history.append(ConversationMessage.user(input))
        return history

    def _inference_options(self) -> InferenceOptions:
        return InferenceOptions(
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            stop_sequences=list(self.config.stop_sequences),
        )

    def _tool_schemas(self) -> list[ToolSchema]:
        return self.tool_registry.schemas() + [h.schema for h in self.handoffs]

    def _combine_hooks(self, hooks: Optional[RunHooks]) -> RunHooks:
        attached = [h for h in (self.hooks, hooks) if h is not None]
        if not attached:
            return _NoopHooks()
        if len(attached) == 1:
            return attached[0]
        return CompositeRunHooks(attached)

    def _streaming_enabled(self, hooks: RunHooks) -> bool:
        return self.config.enable_streaming and not isinstance(hooks, _NoopHooks)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise AgentCancelledError()

    def _check_timeout(self, started_at: float) -> None:
        if time.monotonic() - started_at > self.config.timeout:
            raise AgentTimeoutError(self.config.timeout)

    async def _guard(self, hooks: RunHooks, check) -> None:
        try:
            await check
        except GuardrailTripwireError as e:
            await hooks.on_guardrail_triggered(self, e)
            raise

    # =========================================================================
    # Inference
    # =========================================================================

    def _require_provider(self) -> InferenceProvider:
        if self.provider is None:
            raise InferenceProviderUnavailableError("No inference provider configured")
        return self.provider

    async def _generate(self, prompt: str, options: InferenceOptions, hooks: RunHooks) -> str:
        provider = self._require_provider()
        if not self._streaming_enabled(hooks):
            return await provider.generate(prompt, options)

        tokens = []
        async with contextlib.aclosing(provider.stream(prompt, options)) as stream:
            async for token in stream:
                tokens.append(token)
                await hooks.on_output_token(self, token)
        return "".join(tokens)

    async def _generate_with_tools(
        self,
        prompt: str,
        schemas: list[ToolSchema],
        options: InferenceOptions,
        hooks: RunHooks,
    ) -> InferenceResponse:
        provider = self._require_provider()
        if not (self._streaming_enabled(hooks) and isinstance(provider, ToolCallStreamingProvider)):
            return await provider.generate_with_tool_calls(prompt, schemas, options)

        chunks: list[str] = []
        tool_calls: list[ToolCall] = []
        usage: Optional[TokenUsage] = None

        async with contextlib.aclosing(provider.stream_with_tool_calls(prompt, schemas, options)) as stream:
            async for update in stream:
                if isinstance(update, OutputChunk):
                    chunks.append(update.text)
                    await hooks.on_output_token(self, update.text)
                elif isinstance(update, ToolCallPartial):
                    await hooks.on_tool_call_partial(self, update)
                elif isinstance(update, UsageUpdate):
                    usage = update.usage
                elif isinstance(update, ToolCallsCompleted):
                    tool_calls = update.tool_calls
                    break

        return InferenceResponse(
            content="".join(chunks) or None,
            tool_calls=tool_calls,
            finish_reason=FinishReason.TOOL_CALL if tool_calls else FinishReason.COMPLETED,
            usage=usage,
        )

    # =========================================================================
    # Tools
    # =========================================================================

    async def _execute_tool_calls(self, calls: list[ToolCall], hooks: RunHooks) -> list[ToolExecutionResult]:
        """Execute tool calls, turning unknown tool names into failed results.

        Known tools are dispatched together; results line up with `calls`.
        """
        if not calls:
            return []

        known = [i for i, call in enumerate(calls) if self.tool_registry.contains(call.name)]
        dispatched = await self.dispatcher.dispatch(
            [calls[i] for i in known],
            self.tool_registry,
            policy=FailurePolicy.CONTINUE_ON_ERROR,
            hooks=hooks,
            agent=self,
        )
        by_index = dict(zip(known, dispatched))

        results = []
        for i, call in enumerate(calls):
            if i in by_index:
                results.append(by_index[i])
                continue
            logger.warning(f"Model requested unknown tool: {call.name}")
            error = ToolNotFoundError(call.name)
            await hooks.on_error(self, error)
            results.append(ToolExecutionResult.failure(call.name, call.arguments, error, 0.0, call.id))
        return results

    async def _record_tool_results(
        self,
        calls: list[ToolCall],
        results: list[ToolExecutionResult],
        history: ConversationHistory,
        hooks: RunHooks,
    ) -> None:
        for call, result in zip(calls, results):
            if result.is_success:
                history.append(ConversationMessage.tool_result(call.name, result.output))
                continue

            if isinstance(result.error, GuardrailTripwireError):
                await hooks.on_guardrail_triggered(self, result.error)
                raise result.error

            message = result.error_message or "Unknown error"
            logger.warning(f"Tool '{call.name}' failed: {message}")
            history.append(ConversationMessage.tool_result(call.name, tool_error_message(message)))

            if self.config.stop_on_tool_error:
                raise ToolExecutionFailedError(call.name, message) from result.error

    # =========================================================================
    # Completion
    # =========================================================================

    async def _finish(
        self,
        input: str,
        output: str,
        history: ConversationHistory,
        session: Optional[Session],
        hooks: RunHooks,
        started_at: float,
        iteration: int,
        tool_calls: list[ToolCall],
        tool_results: list[ToolExecutionResult],
        usage: Optional[TokenUsage],
    ) -> AgentResult:
        if self.output_guardrails:
            await self._guard(
                hooks, self.guardrail_runner.run_output(self.output_guardrails, output, self.name)
            )

        history.append(ConversationMessage.assistant(output))

        if session is not None:
            await session.add_items(
                [ConversationMessage.user(input), ConversationMessage.assistant(output)]
            )

        return AgentResult(
            output=output,
            iteration_count=iteration,
            duration=time.monotonic() - started_at,
            tool_calls=tool_calls,
            tool_results=tool_results,
            token_usage=usage,
            history=history.messages,
            stopped_reason="completed",
        )

    async def _handoff(
        self,
        handoff: Handoff,
        call: ToolCall,
        history: ConversationHistory,
        session: Optional[Session],
        hooks: RunHooks,
        started_at: float,
        iteration: int,
        tool_calls: list[ToolCall],
        tool_results: list[ToolExecutionResult],
        usage: Optional[TokenUsage],
    ) -> AgentResult:
        target = handoff.target
        logger.info(f"Agent '{self.name}' handing off to '{target.name}'")
        await hooks.on_handoff(self, target)

        handoff_input = (
            history.last_user_message()
            or call.arguments.get("reason")
            or "Continue the conversation"
        )
        result = await target.run(handoff_input, session=session, hooks=hooks)

        if result.token_usage is not None:
            usage = result.token_usage if usage is None else usage + result.token_usage

        return AgentResult(
            output=result.output,
            iteration_count=iteration,
            duration=time.monotonic() - started_at,
            tool_calls=tool_calls + [call],
            tool_results=tool_results,
            token_usage=usage,
            history=history.messages,
            stopped_reason="handoff",
            metadata={**result.metadata, "handoff.target": target.name},
        )

    def __repr__(self) -> str:
        return f"<AgentLoop name={self.name} tools={len(self.tool_registry)}>"
