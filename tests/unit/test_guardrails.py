"""Tests for guardrails and the guardrail runner."""

import asyncio

import pytest

from agentloop.exceptions import (
    GuardrailExecutionError,
    InputTripwireError,
    OutputTripwireError,
    ToolInputTripwireError,
)
from agentloop.guardrails import (
    Guardrail,
    GuardrailResult,
    GuardrailRunner,
    InputGuardrail,
    OutputGuardrail,
    ToolGuardrailData,
    ToolInputGuardrail,
)


def passing(name: str) -> InputGuardrail:
    return InputGuardrail(name=name, handler=lambda payload: GuardrailResult.passed())


def tripping(name: str, message: str = "nope") -> InputGuardrail:
    return InputGuardrail(name=name, handler=lambda payload: GuardrailResult.tripwire(message))


class BannedWords(OutputGuardrail):
    """Subclass-style guardrail overriding check."""

    async def check(self, payload):
        if "darn" in payload:
            return GuardrailResult.tripwire("language", output_info={"word": "darn"})
        return GuardrailResult.passed()


class TestGuardrail:
    """Tests for Guardrail.validate."""

    @pytest.mark.asyncio
    async def test_sync_handler(self):
        guard = passing("ok")
        result = await guard.validate("hello")

        assert not result.tripwire_triggered

    @pytest.mark.asyncio
    async def test_async_handler(self):
        async def handler(payload):
            await asyncio.sleep(0)
            return GuardrailResult.tripwire("too long") if len(payload) > 3 else GuardrailResult.passed()

        guard = InputGuardrail(name="length", handler=handler)

        assert (await guard.validate("hi")).tripwire_triggered is False
        assert (await guard.validate("hello")).message == "too long"

    @pytest.mark.asyncio
    async def test_subclass_check(self):
        guard = BannedWords()

        assert guard.name == "BannedWords"
        result = await guard.validate("oh darn")
        assert result.output_info == {"word": "darn"}

    @pytest.mark.asyncio
    async def test_missing_handler(self):
        with pytest.raises(NotImplementedError):
            await Guardrail(name="empty").validate("x")


class TestGuardrailRunner:
    """Tests for GuardrailRunner."""

    @pytest.mark.asyncio
    async def test_no_guardrails(self):
        assert await GuardrailRunner().run([], "x") == []

    @pytest.mark.asyncio
    async def test_sequential_stops_at_first_tripwire(self):
        guards = [passing("a"), tripping("b"), passing("c")]

        checks = await GuardrailRunner().run(guards, "x")

        assert [c.guardrail_name for c in checks] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_sequential_runs_all_when_not_stopping(self):
        guards = [tripping("a"), tripping("b")]

        checks = await GuardrailRunner(stop_on_first_tripwire=False).run(guards, "x")

        assert [c.result.tripwire_triggered for c in checks] == [True, True]

    @pytest.mark.asyncio
    async def test_parallel_runs_all(self):
        guards = [tripping("a"), passing("b"), tripping("c")]

        checks = await GuardrailRunner(run_in_parallel=True).run(guards, "x")

        assert [c.guardrail_name for c in checks] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_run_input_raises(self):
        with pytest.raises(InputTripwireError) as exc_info:
            await GuardrailRunner().run_input([passing("a"), tripping("pii", "has email")], "x")

        error = exc_info.value
        assert error.guardrail_name == "pii"
        assert error.detail == "has email"
        assert "Input guardrail 'pii' tripwire triggered: has email" in str(error)

    @pytest.mark.asyncio
    async def test_run_output_names_agent(self):
        with pytest.raises(OutputTripwireError) as exc_info:
            await GuardrailRunner().run_output([BannedWords()], "darn it", agent_name="writer")

        assert exc_info.value.agent_name == "writer"
        assert exc_info.value.output_info == {"word": "darn"}

    @pytest.mark.asyncio
    async def test_run_tool_input(self):
        guard = ToolInputGuardrail(
            name="no_rm",
            handler=lambda data: GuardrailResult.tripwire("dangerous")
            if data.arguments.get("cmd") == "rm"
            else GuardrailResult.passed(),
        )
        runner = GuardrailRunner()

        checks = await runner.run_tool_input([guard], ToolGuardrailData("shell", {"cmd": "ls"}))
        assert len(checks) == 1

        with pytest.raises(ToolInputTripwireError) as exc_info:
            await runner.run_tool_input([guard], ToolGuardrailData("shell", {"cmd": "rm"}))
        assert exc_info.value.tool_name == "shell"

    @pytest.mark.asyncio
    async def test_guardrail_exception_wrapped(self):
        def broken(payload):
            raise ValueError("classifier offline")

        with pytest.raises(GuardrailExecutionError) as exc_info:
            await GuardrailRunner().run([InputGuardrail(name="broken", handler=broken)], "x")

        assert exc_info.value.guardrail_name == "broken"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_missing_handler_wrapped(self):
        with pytest.raises(GuardrailExecutionError, match="no handler"):
            await GuardrailRunner().run([Guardrail(name="empty")], "x")
