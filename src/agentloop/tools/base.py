"""Base classes for tool implementation."""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from agentloop.exceptions import InvalidToolArgumentsError
from agentloop.guardrails.base import ToolInputGuardrail, ToolOutputGuardrail
from agentloop.tools.models import ParameterType, ToolParameter, ToolSchema

_PYTHON_TYPES: dict[ParameterType, tuple[type, ...]] = {
    ParameterType.STRING: (str,),
    ParameterType.INTEGER: (int,),
    ParameterType.NUMBER: (int, float),
    ParameterType.BOOLEAN: (bool,),
    ParameterType.ARRAY: (list, tuple),
    ParameterType.OBJECT: (dict,),
}

_ANNOTATION_TYPES: dict[Any, ParameterType] = {
    str: ParameterType.STRING,
    int: ParameterType.INTEGER,
    float: ParameterType.NUMBER,
    bool: ParameterType.BOOLEAN,
    list: ParameterType.ARRAY,
    dict: ParameterType.OBJECT,
}


class Tool(ABC):
    """Base class for all tools.

    Tools are actions the agent can invoke beyond text generation. Each tool
    defines:
    - Name and description (for the model to understand when to use it)
    - Input parameters (JSON schema)
    - Execution logic, returning any value
    - Optional guardrails around its input and output
    """

    def __init__(self):
        """Initialize the tool."""
        self._validate_definition()

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name (must be unique)."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Description of what the tool does (for the model)."""
        pass

    @property
    @abstractmethod
    def parameters(self) -> list[ToolParameter]:
        """List of tool parameters."""
        pass

    @property
    def input_guardrails(self) -> list[ToolInputGuardrail]:
        return []

    @property
    def output_guardrails(self) -> list[ToolOutputGuardrail]:
        return []

    @property
    def schema(self) -> ToolSchema:
        """Schema advertised to the model."""
        return ToolSchema(name=self.name, description=self.description, parameters=self.parameters)

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Execute the tool with given arguments.

        Args:
            **kwargs: Tool arguments

        Returns:
            Any value; it is rendered to text for the conversation
        """
        pass

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate arguments against the parameter definitions.

        Args:
            arguments: Arguments decoded from the tool call

        Raises:
            InvalidToolArgumentsError: If arguments are missing, unknown or mistyped
        """
        params = {p.name: p for p in self.parameters}
        provided = set(arguments)

        unknown = provided - set(params)
        if unknown:
            raise InvalidToolArgumentsError(
                self.name, f"Unknown parameters: {', '.join(sorted(unknown))}"
            )

        missing = {name for name, p in params.items() if p.required} - provided
        if missing:
            raise InvalidToolArgumentsError(
                self.name, f"Missing required parameters: {', '.join(sorted(missing))}"
            )

        for name, value in arguments.items():
            param = params[name]
            if value is None or param.type == ParameterType.ANY:
                continue
            expected = _PYTHON_TYPES[param.type]
            # bool is a subclass of int
            if isinstance(value, bool) and param.type in (ParameterType.INTEGER, ParameterType.NUMBER):
                raise InvalidToolArgumentsError(
                    self.name, f"Parameter '{name}' expected {param.type.value}, got boolean"
                )
            if not isinstance(value, expected):
                raise InvalidToolArgumentsError(
                    self.name,
                    f"Parameter '{name}' expected {param.type.value}, got {type(value).__name__}",
                )
            if param.enum and value not in param.enum:
                raise InvalidToolArgumentsError(
                    self.name, f"Parameter '{name}' must be one of: {', '.join(param.enum)}"
                )

    def _validate_definition(self) -> None:
        """Validate tool definition is correct.

        Raises:
            ValueError: If tool definition is invalid
        """
        if not self.name:
            raise ValueError("Tool name cannot be empty")

        if not self.description:
            raise ValueError("Tool description cannot be empty")

        param_names = [p.name for p in self.parameters]
        if len(param_names) != len(set(param_names)):
            raise ValueError("Parameter names must be unique")

    def __str__(self) -> str:
        return f"Tool({self.name})"

    def __repr__(self) -> str:
        return f"<Tool name={self.name} parameters={len(self.parameters)}>"


class FunctionTool(Tool):
    """Tool backed by a plain function or coroutine function.

    Synchronous functions run on a worker thread so they never block the
    event loop. Parameters are inferred from the signature unless given.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[list[ToolParameter]] = None,
        input_guardrails: Optional[list[ToolInputGuardrail]] = None,
        output_guardrails: Optional[list[ToolOutputGuardrail]] = None,
    ):
        self._func = func
        self._name = name or func.__name__
        self._description = description or inspect.getdoc(func) or ""
        self._parameters = parameters if parameters is not None else _infer_parameters(func)
        self._input_guardrails = input_guardrails or []
        self._output_guardrails = output_guardrails or []
        super().__init__()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> list[ToolParameter]:
        return self._parameters

    @property
    def input_guardrails(self) -> list[ToolInputGuardrail]:
        return self._input_guardrails

    @property
    def output_guardrails(self) -> list[ToolOutputGuardrail]:
        return self._output_guardrails

    async def execute(self, **kwargs) -> Any:
        if inspect.iscoroutinefunction(self._func):
            return await self._func(**kwargs)
        return await asyncio.to_thread(self._func, **kwargs)


def function_tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[list[ToolParameter]] = None,
) -> Callable[[Callable[..., Any]], FunctionTool]:
    """Decorator turning a function into a FunctionTool.

    Example:
        @function_tool(description="Add two numbers")
        def add(a: int, b: int) -> int:
            return a + b
    """

    def decorator(func: Callable[..., Any]) -> FunctionTool:
        return FunctionTool(func, name=name, description=description, parameters=parameters)

    return decorator


def _infer_parameters(func: Callable[..., Any]) -> list[ToolParameter]:
    params = []
    for param in inspect.signature(func).parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = param.annotation
        origin = getattr(annotation, "__origin__", annotation)
        params.append(
            ToolParameter(
                name=param.name,
                type=_ANNOTATION_TYPES.get(origin, ParameterType.ANY),
                required=param.default is inspect.Parameter.empty,
                default=None if param.default is inspect.Parameter.empty else param.default,
            )
        )
    return params
