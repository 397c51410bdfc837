"""
Pytest configuration and fixtures for agentloop tests.
"""

import asyncio
import os
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Optional, Union

import pytest

from agentloop.agent.history import ConversationMessage
from agentloop.agent.hooks import RunHooks
from agentloop.agent.session import Session
from agentloop.config.loader import clear_config_cache
from agentloop.providers.base import InferenceOptions, ToolCallStreamingProvider
from agentloop.providers.models import (
    InferenceResponse,
    OutputChunk,
    ToolCallPartial,
    ToolCallsCompleted,
    UsageUpdate,
)
from agentloop.tools.base import FunctionTool, Tool
from agentloop.tools.models import ParameterType, ToolParameter, ToolSchema
from agentloop.tools.registry import ToolRegistry

ScriptStep = Union[InferenceResponse, str, Exception]


# =============================================================================
# Providers
# =============================================================================


class ScriptedProvider(ToolCallStreamingProvider):
    """Provider that replays a fixed list of responses.

    Each step is an InferenceResponse, a plain string (a final answer) or an
    exception to raise.
    """

    name = "scripted"

    def __init__(self, steps: Optional[list[ScriptStep]] = None):
        self.steps = list(steps or [])
        self.prompts: list[str] = []
        self.tool_schemas: list[list[ToolSchema]] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def _next(self, prompt: str, tools: Optional[list[ToolSchema]] = None) -> InferenceResponse:
        self.prompts.append(prompt)
        self.tool_schemas.append(list(tools or []))
        if not self.steps:
            raise AssertionError("ScriptedProvider ran out of responses")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, str):
            return InferenceResponse(content=step)
        return step

    async def generate(self, prompt: str, options: InferenceOptions) -> str:
        return self._next(prompt).content or ""

    async def stream(self, prompt: str, options: InferenceOptions):
        response = self._next(prompt)
        words = (response.content or "").split(" ")
        for i, word in enumerate(words):
            yield word if i == len(words) - 1 else word + " "

    async def generate_with_tool_calls(
        self, prompt: str, tools: list[ToolSchema], options: InferenceOptions
    ) -> InferenceResponse:
        return self._next(prompt, tools)

    async def stream_with_tool_calls(
        self, prompt: str, tools: list[ToolSchema], options: InferenceOptions
    ):
        response = self._next(prompt, tools)
        if response.content:
            yield OutputChunk(response.content)
        for index, tool_call in enumerate(response.tool_calls):
            yield ToolCallPartial(
                index=index, id=tool_call.id, name=tool_call.name, arguments_fragment="{}"
            )
        if response.usage is not None:
            yield UsageUpdate(response.usage)
        yield ToolCallsCompleted(list(response.tool_calls))


# =============================================================================
# Tools
# =============================================================================


class EchoTool(Tool):
    """Returns its input."""

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the given text"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [ToolParameter(name="text", type=ParameterType.STRING, description="Text to echo")]

    async def execute(self, **kwargs) -> Any:
        return kwargs["text"]


class FailingTool(Tool):
    """Always raises."""

    def __init__(self, message: str = "boom"):
        self.message = message
        super().__init__()

    @property
    def name(self) -> str:
        return "failing"

    @property
    def description(self) -> str:
        return "A tool that always fails"

    @property
    def parameters(self) -> list[ToolParameter]:
        return []

    async def execute(self, **kwargs) -> Any:
        raise RuntimeError(self.message)


class SleepTool(Tool):
    """Sleeps, then returns its label. Tracks start order and concurrency."""

    def __init__(self, name: str = "sleep"):
        self._name = name
        self.started: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        super().__init__()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Sleep for a while"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(name="seconds", type=ParameterType.NUMBER),
            ToolParameter(name="label", type=ParameterType.STRING),
        ]

    async def execute(self, **kwargs) -> Any:
        self.started.append(kwargs["label"])
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(kwargs["seconds"])
        finally:
            self.in_flight -= 1
        return kwargs["label"]


def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


# =============================================================================
# Sessions and hooks
# =============================================================================


class InMemorySession(Session):
    """Session kept in a list."""

    def __init__(self, items: Optional[list[ConversationMessage]] = None):
        self.items = list(items or [])

    async def get_items(self, limit: Optional[int] = None) -> list[ConversationMessage]:
        if limit is None:
            return list(self.items)
        return self.items[-limit:] if limit else []

    async def add_items(self, items: list[ConversationMessage]) -> None:
        self.items.extend(items)

    async def clear(self) -> None:
        self.items.clear()


class RecordingHooks(RunHooks):
    """Records every hook call as (method, args)."""

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def args_for(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]

    async def on_agent_start(self, agent, input):
        self.calls.append(("on_agent_start", (agent, input)))

    async def on_agent_end(self, agent, result):
        self.calls.append(("on_agent_end", (agent, result)))

    async def on_error(self, agent, error):
        self.calls.append(("on_error", (agent, error)))

    async def on_handoff(self, from_agent, to_agent):
        self.calls.append(("on_handoff", (from_agent, to_agent)))

    async def on_iteration_start(self, agent, iteration):
        self.calls.append(("on_iteration_start", (agent, iteration)))

    async def on_iteration_end(self, agent, iteration):
        self.calls.append(("on_iteration_end", (agent, iteration)))

    async def on_llm_start(self, agent, prompt):
        self.calls.append(("on_llm_start", (agent, prompt)))

    async def on_llm_end(self, agent, content):
        self.calls.append(("on_llm_end", (agent, content)))

    async def on_output_token(self, agent, token):
        self.calls.append(("on_output_token", (agent, token)))

    async def on_tool_call_partial(self, agent, update):
        self.calls.append(("on_tool_call_partial", (agent, update)))

    async def on_tool_start(self, agent, call):
        self.calls.append(("on_tool_start", (agent, call)))

    async def on_tool_end(self, agent, call, result):
        self.calls.append(("on_tool_end", (agent, call, result)))

    async def on_guardrail_triggered(self, agent, error):
        self.calls.append(("on_guardrail_triggered", (agent, error)))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def agentloop_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point AGENTLOOP_HOME at a temporary directory and clear other overrides."""
    home = temp_dir / "home" / ".agentloop"
    home.mkdir(parents=True)
    for key in list(os.environ):
        if key.startswith("AGENTLOOP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("AGENTLOOP_HOME", str(home))
    clear_config_cache()
    yield home
    clear_config_cache()


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """Provide a project directory with a .agentloop/ folder."""
    project = temp_dir / "project"
    (project / ".agentloop").mkdir(parents=True)
    return project


@pytest.fixture
def make_provider() -> Callable[..., ScriptedProvider]:
    """Factory for scripted providers: make_provider(["final answer"])."""
    return ScriptedProvider


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def failing_tool() -> FailingTool:
    return FailingTool()


@pytest.fixture
def add_tool() -> FunctionTool:
    return FunctionTool(add)


@pytest.fixture
def make_sleep_tool() -> Callable[..., SleepTool]:
    return SleepTool


@pytest.fixture
def registry(echo_tool: EchoTool, add_tool: FunctionTool, failing_tool: FailingTool) -> ToolRegistry:
    """Registry with the echo, add and failing tools."""
    return ToolRegistry([echo_tool, add_tool, failing_tool])


@pytest.fixture
def session() -> InMemorySession:
    return InMemorySession()


@pytest.fixture
def make_session() -> Callable[..., InMemorySession]:
    return InMemorySession


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()
