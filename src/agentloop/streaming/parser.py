"""Decoder for OpenAI-style server-sent-event chat-completion streams."""

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterable, Iterator

from agentloop.streaming.events import (
    FinishReasonEvent,
    StreamDone,
    StreamError,
    StreamErrorKind,
    StreamEvent,
    TextDelta,
    ToolCallDelta,
    UsageEvent,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# Provider error "type" values mapped onto stream error kinds
_ERROR_TYPE_KINDS = {
    "invalid_api_key": StreamErrorKind.AUTHENTICATION_FAILED,
    "authentication_error": StreamErrorKind.AUTHENTICATION_FAILED,
    "invalid_request_error": StreamErrorKind.INVALID_REQUEST,
    "rate_limit_error": StreamErrorKind.RATE_LIMITED,
    "context_length_exceeded": StreamErrorKind.CONTEXT_LENGTH,
    "content_filter": StreamErrorKind.CONTENT_FILTERED,
}


class StreamEventParser:
    """Turns SSE lines into typed stream events.

    The parser holds no state between lines; tool-call fragments are
    merged downstream by ToolCallAccumulator.
    """

    @staticmethod
    def parse_line(line: str) -> list[StreamEvent]:
        """Parse one SSE line.

        Args:
            line: Raw line from the event stream

        Returns:
            Events carried by the line, in wire order. Empty for blank lines,
            comments and non-data fields.
        """
        line = line.strip()
        if not line or line.startswith(":"):
            return []

        if not line.startswith(DATA_PREFIX):
            return []

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return [StreamDone()]

        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed stream chunk: {e}")
            return [StreamError(kind=StreamErrorKind.DECODING_ERROR, message=str(e))]

        if not isinstance(chunk, dict):
            return [
                StreamError(
                    kind=StreamErrorKind.DECODING_ERROR,
                    message=f"Expected JSON object, got {type(chunk).__name__}",
                )
            ]

        return StreamEventParser.parse_chunk(chunk)

    @staticmethod
    def parse_chunk(chunk: dict[str, Any]) -> list[StreamEvent]:
        """Parse an already-decoded chat-completion chunk.

        A chunk whose fields have the wrong JSON types yields a single
        decoding error, the same as undecodable JSON.

        Args:
            chunk: Chunk dictionary in OpenAI format

        Returns:
            Events for every choice, followed by usage when present
        """
        error = chunk.get("error")
        if isinstance(error, dict):
            return [_error_event(error)]

        try:
            return _chunk_events(chunk)
        except _MalformedChunk as e:
            logger.warning(f"Skipping malformed stream chunk: {e}")
            return [StreamError(kind=StreamErrorKind.DECODING_ERROR, message=str(e))]

    @staticmethod
    def parse_lines(lines: Iterable[str]) -> Iterator[StreamEvent]:
        """Parse a sequence of lines, stopping after the done sentinel."""
        for line in lines:
            for event in StreamEventParser.parse_line(line):
                yield event
                if isinstance(event, StreamDone):
                    return

    @staticmethod
    async def aparse_lines(lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
        """Async variant of parse_lines for network streams."""
        async for line in lines:
            for event in StreamEventParser.parse_line(line):
                yield event
                if isinstance(event, StreamDone):
                    return


class _MalformedChunk(ValueError):
    """A decoded chunk field has the wrong JSON type."""


def _expect(value: Any, expected: type, field: str) -> Any:
    """Return `value` if it is None or of the expected type."""
    if value is None or isinstance(value, expected):
        return value
    raise _MalformedChunk(f"Expected {expected.__name__} for '{field}', got {type(value).__name__}")


def _tool_call_index(tool_call: dict[str, Any], position: int) -> int:
    index = tool_call.get("index")
    # bool is an int subclass
    if isinstance(index, int) and not isinstance(index, bool):
        return index
    return position


def _chunk_events(chunk: dict[str, Any]) -> list[StreamEvent]:
    events: list[StreamEvent] = []

    for choice in _expect(chunk.get("choices"), list, "choices") or []:
        choice = _expect(choice, dict, "choices[]") or {}
        delta = _expect(choice.get("delta"), dict, "delta") or {}

        content = _expect(delta.get("content"), str, "delta.content")
        if content:
            events.append(TextDelta(text=content))

        tool_calls = _expect(delta.get("tool_calls"), list, "delta.tool_calls")
        if tool_calls is not None:
            for position, tool_call in enumerate(tool_calls):
                if not isinstance(tool_call, dict):
                    raise _MalformedChunk(f"Expected dict for tool call, got {type(tool_call).__name__}")
                function = _expect(tool_call.get("function"), dict, "tool_calls[].function") or {}
                events.append(
                    ToolCallDelta(
                        index=_tool_call_index(tool_call, position),
                        id=_expect(tool_call.get("id"), str, "tool_calls[].id"),
                        name=_expect(function.get("name"), str, "function.name"),
                        arguments=_expect(function.get("arguments"), str, "function.arguments") or "",
                    )
                )
        else:
            # Legacy single function_call format
            function_call = _expect(delta.get("function_call"), dict, "delta.function_call")
            if function_call:
                events.append(
                    ToolCallDelta(
                        index=0,
                        id=None,
                        name=_expect(function_call.get("name"), str, "function_call.name"),
                        arguments=(
                            _expect(function_call.get("arguments"), str, "function_call.arguments") or ""
                        ),
                    )
                )

        finish_reason = _expect(choice.get("finish_reason"), str, "finish_reason")
        if finish_reason:
            events.append(FinishReasonEvent(reason=finish_reason))

    usage = _expect(chunk.get("usage"), dict, "usage")
    if usage:
        events.append(
            UsageEvent(
                prompt_tokens=usage.get("prompt_tokens", 0) or 0,
                completion_tokens=usage.get("completion_tokens", 0) or 0,
            )
        )

    return events


def _error_event(error: dict[str, Any]) -> StreamError:
    message = error.get("message") or "Unknown error"
    error_type = error.get("type") or ""
    code = error.get("code")

    if code == "model_not_found":
        kind = StreamErrorKind.MODEL_NOT_FOUND
    elif code in _ERROR_TYPE_KINDS:
        kind = _ERROR_TYPE_KINDS[code]
    else:
        kind = _ERROR_TYPE_KINDS.get(error_type, StreamErrorKind.UNKNOWN)

    return StreamError(kind=kind, message=message)
