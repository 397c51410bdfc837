"""Data models for agent execution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from agentloop.agent.history import ConversationMessage
from agentloop.providers.models import TokenUsage
from agentloop.tools.models import ToolCall, ToolExecutionResult

DEFAULT_INSTRUCTIONS = "You are a helpful AI assistant with access to tools."


class AgentConfig(BaseModel):
    """Configuration for agent execution."""

    name: str = Field(
        default="Agent",
        description="Agent name, used in handoff tool names and errors",
    )

    instructions: Optional[str] = Field(
        default=None,
        description="System message (None = built-in default)",
    )

    max_iterations: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum agent loop iterations",
    )

    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Wall-clock budget for a run in seconds",
    )

    temperature: float = Field(
        default=1.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )

    max_tokens: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum tokens per model response",
    )

    stop_sequences: list[str] = Field(
        default_factory=list,
        description="Sequences that end generation",
    )

    enable_streaming: bool = Field(
        default=True,
        description="Stream model output when hooks are attached",
    )

    stop_on_tool_error: bool = Field(
        default=False,
        description="Abort the run on the first tool failure",
    )

    session_history_limit: Optional[int] = Field(
        default=50,
        ge=0,
        description="Session messages loaded into history (None = all)",
    )

    parallel_tool_calls: bool = Field(
        default=False,
        description="Run a batch of tool calls concurrently instead of one at a time",
    )

    max_tool_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on concurrent tool calls when running in parallel",
    )

    @property
    def system_message(self) -> str:
        return self.instructions or DEFAULT_INSTRUCTIONS


@dataclass
class AgentResult:
    """Result of agent execution."""

    output: str
    iteration_count: int
    duration: float
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolExecutionResult] = field(default_factory=list)
    token_usage: Optional[TokenUsage] = None
    history: list[ConversationMessage] = field(default_factory=list)
    stopped_reason: str = "completed"  # completed, handoff
    metadata: dict[str, Any] = field(default_factory=dict)


class EventType(str, Enum):
    """Agent execution event types for streaming."""

    AGENT_START = "agent_start"  # Run begins
    ITERATION_START = "iteration_start"  # New iteration begins
    ITERATION_END = "iteration_end"  # Iteration completes
    LLM_START = "llm_start"  # Model call begins
    LLM_END = "llm_end"  # Model call returns
    OUTPUT_TOKEN = "output_token"  # Streamed text fragment
    TOOL_CALL_PARTIAL = "tool_call_partial"  # Streamed tool-call fragment
    TOOL_START = "tool_start"  # Tool execution starts
    TOOL_COMPLETE = "tool_complete"  # Tool execution completes
    TOOL_ERROR = "tool_error"  # Tool execution fails
    HANDOFF = "handoff"  # Control passed to another agent
    GUARDRAIL_TRIGGERED = "guardrail_triggered"  # A guardrail tripwire fired
    AGENT_COMPLETE = "agent_complete"  # Run completes
    AGENT_ERROR = "agent_error"  # Run fails


class AgentEvent(BaseModel):
    """Event emitted during agent execution for streaming updates."""

    event_type: EventType = Field(
        description="Type of event"
    )

    iteration: int = Field(
        default=0,
        description="Current iteration number (1-based, 0 before the first)"
    )

    agent_name: Optional[str] = Field(
        default=None,
        description="Agent that emitted the event"
    )

    tool_name: Optional[str] = Field(
        default=None,
        description="Tool name (for tool events)"
    )

    tool_call_id: Optional[str] = Field(
        default=None,
        description="Tool call ID (for tool events)"
    )

    message: str = Field(
        default="",
        description="Human-readable event message"
    )

    data: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional event data"
    )

    timestamp: str = Field(
        description="ISO timestamp of event"
    )

    class Config:
        use_enum_values = True
