"""Inference backend contracts."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from agentloop.providers.models import InferenceResponse, StreamUpdate
from agentloop.tools.models import ToolSchema


@dataclass
class InferenceOptions:
    """Per-request generation settings."""

    temperature: float = 1.0
    max_tokens: int | None = None
    stop_sequences: list[str] = field(default_factory=list)
    tool_choice: str | None = None  # "auto", "none", "required" or a tool name
    parallel_tool_calls: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class InferenceProvider(ABC):
    """A backend that turns a prompt into text or tool calls."""

    name: str = "provider"

    @abstractmethod
    async def generate(self, prompt: str, options: InferenceOptions) -> str:
        """Generate a complete text response."""
        pass

    @abstractmethod
    def stream(self, prompt: str, options: InferenceOptions) -> AsyncIterator[str]:
        """Stream a text response token by token."""
        pass

    @abstractmethod
    async def generate_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> InferenceResponse:
        """Generate a response that may request tool calls."""
        pass


class ToolCallStreamingProvider(InferenceProvider):
    """A backend that can stream tool-calling responses."""

    @abstractmethod
    def stream_with_tool_calls(
        self,
        prompt: str,
        tools: list[ToolSchema],
        options: InferenceOptions,
    ) -> AsyncIterator[StreamUpdate]:
        """Stream text chunks, tool-call fragments, completed calls and usage."""
        pass
