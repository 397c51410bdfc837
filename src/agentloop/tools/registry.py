"""Tool registry for managing available tools."""

import logging
import threading
from typing import Any, Optional

from agentloop.exceptions import AgentError, ToolExecutionFailedError, ToolNotFoundError
from agentloop.guardrails.base import ToolGuardrailData
from agentloop.guardrails.runner import GuardrailRunner
from agentloop.tools.base import Tool
from agentloop.tools.models import ToolSchema

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for managing available tools.

    The registry owns the name to tool mapping and runs tools with their
    guardrails. Mutations are serialized by a lock so tools can be
    registered while a batch is executing; reads see a consistent snapshot.
    """

    def __init__(self, tools: Optional[list[Tool]] = None, guardrail_runner: Optional[GuardrailRunner] = None):
        """Initialize the tool registry.

        Args:
            tools: Optional tools to register immediately
            guardrail_runner: Runner used for tool guardrails
        """
        self._tools: dict[str, Tool] = {}
        self._lock = threading.RLock()
        self.guardrail_runner = guardrail_runner or GuardrailRunner()
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register

        Raises:
            ValueError: If tool name already registered
        """
        with self._lock:
            if tool.name in self._tools:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name}")

    def unregister(self, name: str) -> bool:
        """Unregister a tool.

        Args:
            name: Tool name to unregister

        Returns:
            True if tool was unregistered, False if not found
        """
        with self._lock:
            if name not in self._tools:
                return False
            del self._tools[name]
        logger.info(f"Unregistered tool: {name}")
        return True

    def lookup(self, name: str) -> Optional[Tool]:
        """Get a tool by name.

        Args:
            name: Tool name

        Returns:
            Tool instance or None if not found
        """
        with self._lock:
            return self._tools.get(name)

    get = lookup

    def contains(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def snapshot(self) -> dict[str, Tool]:
        """Copy of the current name to tool mapping."""
        with self._lock:
            return dict(self._tools)

    def list_tools(self) -> list[Tool]:
        """List all registered tools."""
        return list(self.snapshot().values())

    def list_tool_names(self) -> list[str]:
        """List names of all registered tools."""
        return list(self.snapshot().keys())

    def schemas(self) -> list[ToolSchema]:
        """Schemas of all registered tools, in registration order."""
        return [tool.schema for tool in self.list_tools()]

    def clear(self) -> None:
        """Remove all tools from registry."""
        with self._lock:
            self._tools.clear()
        logger.info("Cleared all tools from registry")

    async def execute(self, name: str, arguments: dict[str, Any]) -> Any:
        """Execute a tool by name.

        Runs argument validation, the tool's input guardrails, the tool body
        and its output guardrails, in that order.

        Args:
            name: Tool name
            arguments: Decoded tool arguments

        Returns:
            Whatever the tool returns

        Raises:
            ToolNotFoundError: If no tool has this name
            InvalidToolArgumentsError: If arguments fail validation
            ToolInputTripwireError: If an input guardrail trips
            ToolOutputTripwireError: If an output guardrail trips
            ToolExecutionFailedError: If the tool body raises
        """
        tool = self.lookup(name)
        if tool is None:
            raise ToolNotFoundError(name)

        tool.validate_arguments(arguments)

        if tool.input_guardrails:
            await self.guardrail_runner.run_tool_input(
                tool.input_guardrails, ToolGuardrailData(tool_name=name, arguments=arguments)
            )

        try:
            value = await tool.execute(**arguments)
        except AgentError:
            raise
        except Exception as e:
            logger.warning(f"Tool '{name}' raised: {e}")
            raise ToolExecutionFailedError(name, str(e)) from e

        if tool.output_guardrails:
            await self.guardrail_runner.run_tool_output(
                tool.output_guardrails,
                ToolGuardrailData(tool_name=name, arguments=arguments, output=value),
            )

        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return self.contains(name)

    def __str__(self) -> str:
        return f"ToolRegistry({len(self)} tools)"

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={self.list_tool_names()}>"
