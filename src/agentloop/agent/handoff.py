"""Handoffs: delegating a run to another agent via a pseudo-tool."""

import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

from agentloop.tools.models import ParameterType, ToolParameter, ToolSchema


class RunnableAgent(Protocol):
    """Anything that can take over a conversation."""

    name: str

    async def run(self, input: str, session: Any = None, hooks: Any = None) -> Any: ...


@dataclass
class Handoff:
    """Exposes a target agent to the model as a callable tool.

    Calling the tool ends the current run and hands the latest user message
    to the target agent, whose output becomes the result.
    """

    target: RunnableAgent
    tool_name_override: Optional[str] = None
    tool_description_override: Optional[str] = None

    @property
    def effective_tool_name(self) -> str:
        if self.tool_name_override:
            return self.tool_name_override
        slug = re.sub(r"[^a-z0-9_]+", "_", str(self.target.name).lower()).strip("_")
        return f"handoff_to_{slug or 'agent'}"

    @property
    def description(self) -> str:
        if self.tool_description_override:
            return self.tool_description_override
        return f"Hand off the conversation to {self.target.name}"

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name=self.effective_tool_name,
            description=self.description,
            parameters=[
                ToolParameter(
                    name="reason",
                    type=ParameterType.STRING,
                    description="Why the conversation is being handed off",
                    required=False,
                )
            ],
        )


def as_handoff(target: Union[Handoff, RunnableAgent]) -> Handoff:
    """Wrap an agent as a Handoff unless it already is one."""
    if isinstance(target, Handoff):
        return target
    return Handoff(target=target)
