"""Inference backends for agentloop."""

from agentloop.providers.base import (
    InferenceOptions,
    InferenceProvider,
    ToolCallStreamingProvider,
)
from agentloop.providers.exceptions import (
    FailureType,
    classify_error,
    error_for_status,
    should_retry,
)
from agentloop.providers.litellm_provider import LiteLLMProvider
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
from agentloop.providers.openai_compat import OpenAICompatibleProvider
from agentloop.providers.parser import ToolCallParser

__all__ = [
    "FailureType",
    "FinishReason",
    "InferenceOptions",
    "InferenceProvider",
    "InferenceResponse",
    "LiteLLMProvider",
    "OpenAICompatibleProvider",
    "OutputChunk",
    "StreamUpdate",
    "TokenUsage",
    "ToolCallParser",
    "ToolCallPartial",
    "ToolCallStreamingProvider",
    "ToolCallsCompleted",
    "UsageUpdate",
    "classify_error",
    "error_for_status",
    "should_retry",
]
