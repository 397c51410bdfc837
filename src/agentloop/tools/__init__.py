"""Tool contracts, registry and parallel dispatch."""

from agentloop.tools.base import FunctionTool, Tool, function_tool
from agentloop.tools.dispatcher import FailurePolicy, ParallelToolDispatcher
from agentloop.tools.models import (
    ParameterType,
    ToolCall,
    ToolExecutionResult,
    ToolParameter,
    ToolSchema,
)
from agentloop.tools.registry import ToolRegistry

__all__ = [
    "FailurePolicy",
    "FunctionTool",
    "ParallelToolDispatcher",
    "ParameterType",
    "Tool",
    "ToolCall",
    "ToolExecutionResult",
    "ToolParameter",
    "ToolRegistry",
    "ToolSchema",
    "function_tool",
]
