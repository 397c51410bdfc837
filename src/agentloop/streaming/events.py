"""Typed events decoded from a streaming chat-completion response."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class StreamErrorKind(str, Enum):
    """Category of an error carried in a stream."""

    DECODING_ERROR = "decoding_error"
    AUTHENTICATION_FAILED = "authentication_failed"
    INVALID_REQUEST = "invalid_request"
    RATE_LIMITED = "rate_limited"
    CONTEXT_LENGTH = "context_length"
    CONTENT_FILTERED = "content_filtered"
    MODEL_NOT_FOUND = "model_not_found"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text."""

    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """A fragment of a tool call, keyed by its position in the response."""

    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


@dataclass(frozen=True)
class FinishReasonEvent:
    """The backend's reason for ending a choice."""

    reason: str


@dataclass(frozen=True)
class UsageEvent:
    """Token accounting reported at the end of a stream."""

    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class StreamDone:
    """The `[DONE]` sentinel."""


@dataclass(frozen=True)
class StreamError:
    """A stream-level error, either from the backend or from decoding."""

    kind: StreamErrorKind
    message: str = ""


StreamEvent = Union[TextDelta, ToolCallDelta, FinishReasonEvent, UsageEvent, StreamDone, StreamError]
