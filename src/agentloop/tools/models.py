"""Data models for tool use."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ParameterType(str, Enum):
    """JSON schema type of a tool parameter."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class ToolParameter(BaseModel):
    """Defines a parameter for a tool.

    Array parameters describe their elements with `items`; object
    parameters describe their fields with `properties`.
    """

    name: str
    type: ParameterType = ParameterType.STRING
    description: str = ""
    required: bool = True
    default: Optional[Any] = None
    enum: Optional[list[str]] = None  # For restricted choices
    items: Optional["ToolParameter"] = None
    properties: Optional[list["ToolParameter"]] = None

    def to_json_schema(self) -> dict[str, Any]:
        """Render this parameter as a JSON schema fragment."""
        schema: dict[str, Any] = {}
        if self.type != ParameterType.ANY:
            schema["type"] = self.type.value
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = self.enum
        if self.default is not None:
            schema["default"] = self.default
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()
        if self.properties is not None:
            schema["properties"] = {p.name: p.to_json_schema() for p in self.properties}
            schema["required"] = [p.name for p in self.properties if p.required]
        return schema


ToolParameter.model_rebuild()


class ToolSchema(BaseModel):
    """Name, description and parameters advertised to the model."""

    name: str
    description: str
    parameters: list[ToolParameter] = Field(default_factory=list)

    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {p.name: p.to_json_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai(self) -> dict[str, Any]:
        """Tool definition in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema(),
            },
        }


class ToolCall(BaseModel):
    """Represents a tool call requested by the model."""

    model_config = ConfigDict(frozen=True)

    id: str  # Tool call ID for tracking (from model response)
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.name}({', '.join(f'{k}={v}' for k, v in self.arguments.items())})"


@dataclass(frozen=True)
class ToolExecutionResult:
    """Outcome of one tool invocation.

    Exactly one of `value` or `error` is meaningful, as indicated by
    `is_success`.
    """

    tool_name: str
    arguments: dict[str, Any]
    is_success: bool
    value: Any = None
    error: Optional[BaseException] = None
    duration: float = 0.0
    tool_call_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def success(
        cls,
        tool_name: str,
        arguments: dict[str, Any],
        value: Any,
        duration: float,
        tool_call_id: Optional[str] = None,
    ) -> "ToolExecutionResult":
        return cls(
            tool_name=tool_name,
            arguments=arguments,
            is_success=True,
            value=value,
            duration=duration,
            tool_call_id=tool_call_id,
        )

    @classmethod
    def failure(
        cls,
        tool_name: str,
        arguments: dict[str, Any],
        error: BaseException,
        duration: float,
        tool_call_id: Optional[str] = None,
    ) -> "ToolExecutionResult":
        return cls(
            tool_name=tool_name,
            arguments=arguments,
            is_success=False,
            error=error,
            duration=duration,
            tool_call_id=tool_call_id,
        )

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)

    @property
    def output(self) -> str:
        """Text rendering of the value for conversation history."""
        return render_tool_output(self.value)

    def __str__(self) -> str:
        if not self.is_success:
            return f"Error: {self.error_message}"
        text = self.output
        return text[:200] + ("..." if len(text) > 200 else "")


def render_tool_output(value: Any) -> str:
    """Render a tool's return value as text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)
