"""Streaming response decoding for agentloop."""

from agentloop.streaming.accumulator import (
    AccumulatingToolCall,
    CompletedToolCall,
    ToolCallAccumulator,
)
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
from agentloop.streaming.parser import StreamEventParser

__all__ = [
    "AccumulatingToolCall",
    "CompletedToolCall",
    "FinishReasonEvent",
    "StreamDone",
    "StreamError",
    "StreamErrorKind",
    "StreamEvent",
    "StreamEventParser",
    "TextDelta",
    "ToolCallAccumulator",
    "ToolCallDelta",
    "UsageEvent",
]
