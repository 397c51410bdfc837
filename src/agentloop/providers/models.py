"""
Provider data models for agentloop.

Defines the response and streaming update types shared by all backends.
"""

from dataclasses import dataclass, field
from enum import Enum

from agentloop.tools.models import ToolCall


class FinishReason(str, Enum):
    """Why the model stopped generating."""

    COMPLETED = "completed"
    TOOL_CALL = "tool_call"
    MAX_TOKENS = "max_tokens"
    CONTENT_FILTER = "content_filter"


@dataclass
class TokenUsage:
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self) -> None:
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


@dataclass
class InferenceResponse:
    """Unified non-streaming response from any backend."""

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.COMPLETED
    usage: TokenUsage | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


# Streaming updates yielded by ToolCallStreamingProvider.stream_with_tool_calls


@dataclass(frozen=True)
class OutputChunk:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallPartial:
    """A tool-call fragment, as seen so far."""

    index: int
    id: str | None
    name: str | None
    arguments_fragment: str


@dataclass(frozen=True)
class ToolCallsCompleted:
    """All tool calls of the response, fully assembled."""

    tool_calls: list[ToolCall]


@dataclass(frozen=True)
class UsageUpdate:
    """Token usage reported by the stream."""

    usage: TokenUsage


StreamUpdate = OutputChunk | ToolCallPartial | ToolCallsCompleted | UsageUpdate
