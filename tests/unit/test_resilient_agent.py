"""Tests for ResilientAgent."""

import asyncio

import pytest

from agentloop.agent import AgentConfig, AgentLoop
from agentloop.agent.models import AgentResult
from agentloop.exceptions import (
    AgentTimeoutError,
    AuthenticationError,
    CircuitBreakerOpenError,
    GenerationFailedError,
)
from agentloop.resilience import CircuitBreaker, ImmediateBackoff, RateLimiter, ResilientAgent, RetryPolicy


class SlowAgent:
    """Agent stand-in that sleeps before answering."""

    def __init__(self, name: str = "slow", delay: float = 1.0):
        self.name = name
        self.delay = delay
        self.cancelled = False

    async def run(self, input, session=None, hooks=None):
        await asyncio.sleep(self.delay)
        return AgentResult(output=f"slow: {input}", iteration_count=1, duration=self.delay)

    def cancel(self):
        self.cancelled = True


def make_loop(provider, name: str = "primary") -> AgentLoop:
    return AgentLoop(provider=provider, config=AgentConfig(name=name))


def quick_retry(attempts: int = 3) -> RetryPolicy:
    return RetryPolicy(max_attempts=attempts, backoff=ImmediateBackoff())


class TestResilientAgent:
    """Tests for policies applied around a whole run."""

    @pytest.mark.asyncio
    async def test_no_policies(self, make_provider):
        agent = ResilientAgent(make_loop(make_provider(["hello"])))

        result = await agent.run("Hi")

        assert result.output == "hello"
        assert result.metadata["resilience.used_fallback"] is False
        assert result.metadata["resilience.has_retry"] is False
        assert "resilience.max_retry_attempts" not in result.metadata

    @pytest.mark.asyncio
    async def test_retry_reruns_base(self, make_provider):
        provider = make_provider([GenerationFailedError("flaky"), "recovered"])
        agent = ResilientAgent(make_loop(provider), retry_policy=quick_retry())

        result = await agent.run("Hi")

        assert result.output == "recovered"
        assert provider.calls == 2
        assert result.metadata["resilience.max_retry_attempts"] == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_not_retried(self, make_provider):
        provider = make_provider([AuthenticationError("bad key"), "unused"])
        agent = ResilientAgent(make_loop(provider), retry_policy=quick_retry())

        with pytest.raises(AuthenticationError):
            await agent.run("Hi")

        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_fallback_agent(self, make_provider, hooks):
        backup = make_loop(make_provider(["from backup"]), name="backup")
        agent = ResilientAgent(
            make_loop(make_provider([AuthenticationError("bad key")])),
            fallback_agent=backup,
        )

        result = await agent.run("Hi", hooks=hooks)

        assert result.output == "from backup"
        assert result.metadata["resilience.used_fallback"] is True
        assert "bad key" in result.metadata["resilience.primary_error"]
        assert hooks.args_for("on_handoff") == [(agent, backup)]

    @pytest.mark.asyncio
    async def test_fallback_failure_raises_primary(self, make_provider):
        agent = ResilientAgent(
            make_loop(make_provider([AuthenticationError("bad key")])),
            fallback_agent=make_loop(make_provider([GenerationFailedError("backup down")]), name="backup"),
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await agent.run("Hi")

        assert isinstance(exc_info.value.__cause__, GenerationFailedError)

    @pytest.mark.asyncio
    async def test_retry_exhausted_before_fallback(self, make_provider):
        provider = make_provider([GenerationFailedError("a"), GenerationFailedError("b")])
        agent = ResilientAgent(
            make_loop(provider),
            retry_policy=quick_retry(2),
            fallback_agent=make_loop(make_provider(["backup"]), name="backup"),
        )

        result = await agent.run("Hi")

        assert provider.calls == 2
        assert result.output == "backup"

    @pytest.mark.asyncio
    async def test_circuit_breaker_rejects_after_threshold(self, make_provider):
        provider = make_provider([GenerationFailedError("down"), "never reached"])
        breaker = CircuitBreaker("llm", failure_threshold=1, reset_timeout=60)
        agent = ResilientAgent(make_loop(provider), circuit_breaker=breaker)

        with pytest.raises(GenerationFailedError):
            await agent.run("Hi")
        with pytest.raises(CircuitBreakerOpenError):
            await agent.run("Hi")

        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        agent = ResilientAgent(SlowAgent(delay=1.0), timeout=0.05)

        with pytest.raises(AgentTimeoutError) as exc_info:
            await agent.run("Hi")

        assert "Agent 'slow'" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        agent = ResilientAgent(
            SlowAgent(delay=1.0),
            timeout=0.05,
            fallback_agent=SlowAgent(name="quick", delay=0.0),
        )

        result = await agent.run("Hi")

        assert result.output == "slow: Hi"
        assert result.metadata["resilience.used_fallback"] is True
        assert result.metadata["resilience.has_timeout"] is True

    @pytest.mark.asyncio
    async def test_rate_limiter_gates_each_attempt(self, make_provider):
        provider = make_provider([GenerationFailedError("flaky"), "recovered"])
        limiter = RateLimiter(max_tokens=2, refill_rate=0.001, clock=lambda: 0.0)
        agent = ResilientAgent(make_loop(provider), retry_policy=quick_retry(), rate_limiter=limiter)

        result = await agent.run("Hi")

        assert result.output == "recovered"
        assert result.metadata["resilience.has_rate_limiter"] is True
        assert not await limiter.try_acquire()

    @pytest.mark.asyncio
    async def test_rate_limiter_without_tokens_blocks_run(self, make_provider):
        provider = make_provider(["unused"])
        limiter = RateLimiter(max_tokens=1, refill_rate=0.001, clock=lambda: 0.0)
        await limiter.acquire()
        agent = ResilientAgent(make_loop(provider)).with_rate_limiter(limiter).with_timeout(0.05)

        with pytest.raises(AgentTimeoutError):
            await agent.run("Hi")

        assert provider.calls == 0

    def test_fluent_configuration_returns_new_agent(self, make_provider):
        base = make_loop(make_provider([]))
        plain = ResilientAgent(base)
        breaker = CircuitBreaker("llm")

        configured = plain.with_retry(quick_retry()).with_circuit_breaker(breaker).with_timeout(30)

        assert configured is not plain
        assert plain.retry_policy is None
        assert configured.retry_policy.max_attempts == 3
        assert configured.circuit_breaker is breaker
        assert configured.timeout == 30
        assert configured.base is base

    def test_delegates_name_and_config(self, make_provider):
        agent = ResilientAgent(make_loop(make_provider([]), name="planner"))

        assert agent.name == "planner"
        assert agent.config.name == "planner"
        assert repr(agent) == "<ResilientAgent base=planner>"

    def test_cancel_reaches_base_and_fallback(self):
        base, backup = SlowAgent(), SlowAgent(name="backup")

        ResilientAgent(base).with_fallback(backup).cancel()

        assert base.cancelled
        assert backup.cancelled
