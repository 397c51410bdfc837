"""
LiteLLM backend for agentloop.

Gives the agent loop access to every provider LiteLLM supports, with model
alias resolution and an ordered chain of fallback models.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import litellm
from litellm import acompletion

from agentloop.exceptions import AgentError, GenerationFailedError
from agentloop.providers.base import InferenceOptions, ToolCallStreamingProvider
from agentloop.providers.exceptions import error_for_litellm, error_for_stream_event
from agentloop.providers.model_chain import ModelChain
from agentloop.providers.models import (
    InferenceResponse,
    OutputChunk,
    StreamUpdate,
    TokenUsage,
    ToolCallPartial,
    ToolCallsCompleted,
    UsageUpdate,
)
from agentloop.providers.parser import ToolCallParser
from agentloop.streaming.accumulator import ToolCallAccumulator
from agentloop.streaming.events import StreamError, StreamErrorKind, TextDelta, ToolCallDelta, UsageEvent
from agentloop.streaming.parser import StreamEventParser
from agentloop.tools.models import ToolSchema

logger = logging.getLogger(__name__)

# Drop unsupported params per-provider
litellm.drop_params = True


class LiteLLMProvider(ToolCallStreamingProvider):
    """
    Inference backend routed through LiteLLM.

    When a request fails with a retriable error, the models listed in
    `fallback` are tried in order before giving up.
    """

    def __init__(
        self,
        model: str,
        aliases: dict[str, str] | None = None,
        fallback: list[str] | None = None,
        system_prompt: str | None = None,
        api_base: str | None = None,
        api_key: str | None = None,
        request_timeout: float | None = None,
    ):
        """
        Initialize the provider.

        Args:
            model: Default model, or an alias of one.
            aliases: Map of short names to full model identifiers.
            fallback: Models tried in order when the primary fails.
            system_prompt: Optional system message prepended to each prompt.
            api_base: Optional API base URL override.
            api_key: Optional API key; LiteLLM reads provider env vars otherwise.
            request_timeout: Per-request timeout in seconds.
        """
        self.aliases = aliases or {}
        self.model = self._resolve_model(model)
        self.fallback = [self._resolve_model(m) for m in fallback or []]
        self.system_prompt = system_prompt
        self.api_base = api_base
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.name = self._extract_provider(self.model)

    def _resolve_model(self, model: str) -> str:
        """
        Resolve model name from alias.

        Args:
            model: Model name or alias.

        Returns:
            The fully resolved model identifier.
        """
        if model in self.aliases:
            resolved = self.aliases[model]
            logger.debug(f"Resolved alias '{model}' to '{resolved}'")
            return resolved
        return model

    def _extract_provider(self, model: str) -> str:
        """Extract provider name from model string."""
        if "/" in model:
            return model.split("/")[0]
        return "litellm"

    # =========================================================================
    # InferenceProvider
    # =========================================================================

    async def generate(self, prompt: str, options: InferenceOptions) -> str:
        response = await self.generate_with_tool_calls(prompt, [], options)
        if response.content is None:
            raise GenerationFailedError("Model returned no content")
        return response.content

    async def stream(self, prompt: str, options: InferenceOptions) -> AsyncIterator[str]:
        async for update in self.stream_with_tool_calls(prompt, [], options):
            if isinstance(update, OutputChunk):
                yield update.text

    async def generate_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> InferenceResponse:
        kwargs = self._request_kwargs(prompt, tools, options, stream=False)
        response = await self._complete(kwargs)
        return ToolCallParser.parse_response(_to_dict(response))

    async def stream_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> AsyncIterator[StreamUpdate]:
        kwargs = self._request_kwargs(prompt, tools, options, stream=True)
        response = await self._complete(kwargs)
        accumulator = ToolCallAccumulator()

        try:
            async for chunk in response:
                for event in StreamEventParser.parse_chunk(_to_dict(chunk)):
                    if isinstance(event, TextDelta):
                        yield OutputChunk(text=event.text)
                    elif isinstance(event, ToolCallDelta):
                        accumulator.accumulate_delta(event)
                        yield ToolCallPartial(
                            index=event.index,
                            id=event.id,
                            name=event.name,
                            arguments_fragment=event.arguments,
                        )
                    elif isinstance(event, UsageEvent):
                        yield UsageUpdate(
                            usage=TokenUsage(
                                prompt_tokens=event.prompt_tokens,
                                completion_tokens=event.completion_tokens,
                            )
                        )
                    elif isinstance(event, StreamError) and event.kind != StreamErrorKind.DECODING_ERROR:
                        raise error_for_stream_event(event, provider=self.name)
        except AgentError:
            raise
        except Exception as e:
            raise error_for_litellm(e, provider=self.name, model=kwargs["model"]) from e

        if accumulator.has_tool_calls:
            completed = accumulator.get_completed_tool_calls()
            yield ToolCallsCompleted(tool_calls=ToolCallParser.from_accumulated(completed))

    # =========================================================================
    # Requests
    # =========================================================================

    def _request_kwargs(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
        stream: bool,
    ) -> dict[str, Any]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": options.temperature,
            "stream": stream,
            **options.extra,
        }
        if options.max_tokens:
            kwargs["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            kwargs["stop"] = options.stop_sequences
        if tools:
            kwargs["tools"] = [tool.to_openai() for tool in tools]
            if options.tool_choice:
                kwargs["tool_choice"] = options.tool_choice
            if options.parallel_tool_calls is not None:
                kwargs["parallel_tool_calls"] = options.parallel_tool_calls
        if stream:
            kwargs["stream_options"] = {"include_usage": True}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.request_timeout:
            kwargs["timeout"] = self.request_timeout
        return kwargs

    async def _complete(self, kwargs: dict[str, Any]) -> Any:
        """Call LiteLLM, walking the fallback chain on retriable failures."""
        chain = ModelChain(kwargs["model"], self.fallback)

        async def request(model: str) -> Any:
            return await acompletion(**{**kwargs, "model": model})

        try:
            return await chain.run(request)
        except Exception as e:
            raise error_for_litellm(e, provider=self.name, model=chain.last_model) from e

    def __repr__(self) -> str:
        return f"<LiteLLMProvider model={self.model} fallback={self.fallback}>"


def _to_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return dict(obj)
