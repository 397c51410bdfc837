"""
OpenAI-compatible chat-completions backend over httpx.

Works with any server speaking the `/chat/completions` wire format
(OpenAI, OpenRouter, vLLM, Ollama, ...), including SSE streaming of
text and tool calls.
"""

import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import httpx

from agentloop.exceptions import (
    AuthenticationError,
    ContentFilteredError,
    GenerationFailedError,
    InferenceProviderUnavailableError,
)
from agentloop.providers.base import InferenceOptions, ToolCallStreamingProvider
from agentloop.providers.exceptions import error_for_status, error_for_stream_event
from agentloop.providers.models import (
    FinishReason,
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
from agentloop.streaming.events import (
    StreamError,
    StreamErrorKind,
    StreamEvent,
    TextDelta,
    ToolCallDelta,
    UsageEvent,
)
from agentloop.streaming.parser import StreamEventParser
from agentloop.tools.models import ToolSchema

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatibleProvider(ToolCallStreamingProvider):
    """
    Chat-completions client for OpenAI-compatible endpoints.

    The prompt is sent as a single user message, preceded by an optional
    system prompt.
    """

    def __init__(
        self,
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        api_key_env: str | None = "OPENAI_API_KEY",
        system_prompt: str | None = None,
        timeout: float = 60.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        name: str = "openai_compatible",
    ):
        """
        Initialize the provider.

        Args:
            model: Model identifier sent with each request.
            base_url: API base URL; `/chat/completions` is appended.
            api_key: API key. Read from `api_key_env` when not given.
            api_key_env: Environment variable holding the API key.
            system_prompt: Optional system message prepended to each prompt.
            timeout: Request timeout in seconds.
            headers: Extra headers sent with every request.
            client: Shared httpx client. One is created when not given.
            name: Provider name reported in errors.
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or (os.environ.get(api_key_env) if api_key_env else None)
        self.system_prompt = system_prompt
        self.timeout = timeout
        self.extra_headers = headers or {}
        self.name = name
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenAICompatibleProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================================================================
    # InferenceProvider
    # =========================================================================

    async def generate(self, prompt: str, options: InferenceOptions) -> str:
        data = await self._post(self._build_body(prompt, options))
        response = ToolCallParser.parse_response(data)
        self._check_finish(response)
        if response.content is None:
            raise GenerationFailedError("Model returned no content")
        return response.content

    async def stream(self, prompt: str, options: InferenceOptions) -> AsyncIterator[str]:
        body = self._build_body(prompt, options, stream=True)
        async for event in self._stream_events(body):
            if isinstance(event, TextDelta):
                yield event.text

    async def generate_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> InferenceResponse:
        data = await self._post(self._build_body(prompt, options, tools=tools))
        response = ToolCallParser.parse_response(data)
        self._check_finish(response)
        logger.debug(
            f"Received response: finish={response.finish_reason.value}, "
            f"tool_calls={len(response.tool_calls)}"
        )
        return response

    async def stream_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> AsyncIterator[StreamUpdate]:
        body = self._build_body(prompt, options, tools=tools, stream=True)
        accumulator = ToolCallAccumulator()

        async for event in self._stream_events(body):
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

        if accumulator.has_tool_calls:
            completed = accumulator.get_completed_tool_calls()
            if len(completed) < len(accumulator):
                logger.warning(
                    f"Dropping {len(accumulator) - len(completed)} incomplete streamed tool calls"
                )
            yield ToolCallsCompleted(tool_calls=ToolCallParser.from_accumulated(completed))

    # =========================================================================
    # Wire
    # =========================================================================

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self.extra_headers}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_messages(self, prompt: str) -> list[dict[str, Any]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _build_body(
        self,
        prompt: str,
        options: InferenceOptions,
        tools: list[ToolSchema] | None = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(prompt),
            "temperature": options.temperature,
            "stream": stream,
        }
        if options.max_tokens:
            body["max_tokens"] = options.max_tokens
        if options.stop_sequences:
            body["stop"] = options.stop_sequences
        if tools:
            body["tools"] = [tool.to_openai() for tool in tools]
            if options.tool_choice:
                body["tool_choice"] = _tool_choice(options.tool_choice)
            if options.parallel_tool_calls is not None:
                body["parallel_tool_calls"] = options.parallel_tool_calls
        if stream:
            body["stream_options"] = {"include_usage": True}
        body.update(options.extra)
        return body

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        self._require_key()
        try:
            response = await self.client.post(self.url, json=body, headers=self._headers())
        except httpx.TimeoutException as e:
            raise InferenceProviderUnavailableError("Request timed out", provider=self.name) from e
        except httpx.TransportError as e:
            raise InferenceProviderUnavailableError(f"Network error: {e}", provider=self.name) from e

        if response.status_code >= 400:
            raise error_for_status(
                response.status_code,
                response.text,
                response.headers,
                provider=self.name,
                model=self.model,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GenerationFailedError(f"Invalid JSON response: {e}") from e

    async def _stream_events(self, body: dict[str, Any]) -> AsyncIterator[StreamEvent]:
        self._require_key()
        try:
            async with self.client.stream("POST", self.url, json=body, headers=self._headers()) as response:
                if response.status_code >= 400:
                    text = (await response.aread()).decode("utf-8", errors="replace")
                    raise error_for_status(
                        response.status_code,
                        text,
                        response.headers,
                        provider=self.name,
                        model=self.model,
                    )

                async for event in StreamEventParser.aparse_lines(response.aiter_lines()):
                    if isinstance(event, StreamError):
                        if event.kind == StreamErrorKind.DECODING_ERROR:
                            continue
                        raise error_for_stream_event(event, provider=self.name)
                    yield event
        except httpx.TimeoutException as e:
            raise InferenceProviderUnavailableError("Stream timed out", provider=self.name) from e
        except httpx.TransportError as e:
            raise InferenceProviderUnavailableError(f"Network error: {e}", provider=self.name) from e

    def _require_key(self) -> None:
        if not self.api_key and self.base_url == DEFAULT_BASE_URL:
            raise AuthenticationError("No API key configured", provider=self.name)

    def _check_finish(self, response: InferenceResponse) -> None:
        if response.finish_reason == FinishReason.CONTENT_FILTER and not response.content:
            raise ContentFilteredError("Response blocked by content filter")

    def __repr__(self) -> str:
        return f"<OpenAICompatibleProvider model={self.model} base_url={self.base_url}>"


def _tool_choice(choice: str) -> str | dict[str, Any]:
    if choice in ("auto", "none", "required"):
        return choice
    return {"type": "function", "function": {"name": choice}}
