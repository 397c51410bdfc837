"""Agent execution loop and its supporting types."""

from agentloop.agent.handoff import Handoff
from agentloop.agent.history import ConversationHistory, ConversationMessage, MessageRole
from agentloop.agent.hooks import CompositeRunHooks, EventStreamHooks, RunHooks
from agentloop.agent.loop import AgentLoop
from agentloop.agent.models import AgentConfig, AgentEvent, AgentResult, EventType
from agentloop.agent.session import Session

__all__ = [
    "AgentConfig",
    "AgentEvent",
    "AgentLoop",
    "AgentResult",
    "CompositeRunHooks",
    "ConversationHistory",
    "ConversationMessage",
    "EventStreamHooks",
    "EventType",
    "Handoff",
    "MessageRole",
    "RunHooks",
    "Session",
]
