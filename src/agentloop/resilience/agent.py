"""Resilience policies applied around a whole agent run."""

import dataclasses
import logging
from typing import Any, Optional

from agentloop.agent.handoff import RunnableAgent
from agentloop.agent.hooks import RunHooks
from agentloop.agent.models import AgentResult
from agentloop.agent.session import Session
from agentloop.resilience.circuit_breaker import CircuitBreaker
from agentloop.resilience.fallback import Fallback
from agentloop.resilience.rate_limiter import RateLimiter
from agentloop.resilience.retry import RetryPolicy
from agentloop.resilience.timeout import Timeout

logger = logging.getLogger(__name__)


class ResilientAgent:
    """Wraps an agent with timeout, circuit breaker, retry, rate limit and fallback.

    Policies nest from the outside in: timeout, then circuit breaker, then
    retry, then the rate limiter around the base agent's `run`, so every
    retry attempt takes a token. The fallback agent runs when the
    wrapped call fails, with the same input and session.

    Example:
        agent = (
            ResilientAgent(base)
            .with_retry(RetryPolicy.standard())
            .with_circuit_breaker(CircuitBreaker("llm", failure_threshold=3))
            .with_fallback(backup)
            .with_timeout(120)
        )
    """

    def __init__(
        self,
        base: RunnableAgent,
        retry_policy: Optional[RetryPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        fallback_agent: Optional[RunnableAgent] = None,
        timeout: Optional[float] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.base = base
        self.retry_policy = retry_policy
        self.circuit_breaker = circuit_breaker
        self.fallback_agent = fallback_agent
        self.timeout = timeout
        self.rate_limiter = rate_limiter

    @property
    def name(self) -> str:
        return self.base.name

    @property
    def config(self) -> Any:
        return getattr(self.base, "config", None)

    def cancel(self) -> None:
        for agent in (self.base, self.fallback_agent):
            if agent is not None and hasattr(agent, "cancel"):
                agent.cancel()

    # =========================================================================
    # Fluent configuration
    # =========================================================================

    def with_retry(self, policy: RetryPolicy) -> "ResilientAgent":
        return self._replace(retry_policy=policy)

    def with_circuit_breaker(self, breaker: CircuitBreaker) -> "ResilientAgent":
        return self._replace(circuit_breaker=breaker)

    def with_fallback(self, agent: RunnableAgent) -> "ResilientAgent":
        return self._replace(fallback_agent=agent)

    def with_timeout(self, seconds: float) -> "ResilientAgent":
        return self._replace(timeout=seconds)

    def with_rate_limiter(self, limiter: RateLimiter) -> "ResilientAgent":
        return self._replace(rate_limiter=limiter)

    def _replace(self, **changes: Any) -> "ResilientAgent":
        settings = {
            "base": self.base,
            "retry_policy": self.retry_policy,
            "circuit_breaker": self.circuit_breaker,
            "fallback_agent": self.fallback_agent,
            "timeout": self.timeout,
            "rate_limiter": self.rate_limiter,
        }
        settings.update(changes)
        return ResilientAgent(**settings)

    # =========================================================================
    # Execution
    # =========================================================================

    async def run(
        self,
        input: str,
        session: Optional[Session] = None,
        hooks: Optional[RunHooks] = None,
    ) -> AgentResult:
        """Run the base agent under the configured policies.

        Raises:
            AgentError: The primary error when the fallback also fails or
                none is configured
        """
        if self.fallback_agent is None:
            result = await self._run_primary(input, session, hooks)
            return self._annotate(result, used_fallback=False)

        primary_errors: list[BaseException] = []

        async def on_primary_failure(_: str, error: BaseException) -> None:
            primary_errors.append(error)
            logger.warning(f"Agent '{self.name}' failed, falling back to '{self.fallback_agent.name}'")
            if hooks is not None:
                await hooks.on_handoff(self, self.fallback_agent)

        fallback = Fallback(secondary=self._run_fallback, on_failure=on_primary_failure)
        result = await fallback.execute(self._run_primary, input, session, hooks)

        if primary_errors:
            return self._annotate(result, used_fallback=True, primary_error=primary_errors[0])
        return self._annotate(result, used_fallback=False)

    async def _run_primary(
        self,
        input: str,
        session: Optional[Session],
        hooks: Optional[RunHooks],
    ) -> AgentResult:
        operation = self.base.run if self.rate_limiter is None else self._run_limited
        if self.retry_policy is not None:
            operation = self.retry_policy.wrap(operation)
        if self.circuit_breaker is not None:
            operation = self.circuit_breaker.wrap(operation)
        if self.timeout is not None:
            operation = Timeout(self.timeout, f"Agent '{self.name}'").wrap(operation)
        return await operation(input, session=session, hooks=hooks)

    async def _run_limited(
        self,
        input: str,
        session: Optional[Session] = None,
        hooks: Optional[RunHooks] = None,
    ) -> AgentResult:
        await self.rate_limiter.acquire()
        return await self.base.run(input, session=session, hooks=hooks)

    async def _run_fallback(
        self,
        input: str,
        session: Optional[Session],
        hooks: Optional[RunHooks],
    ) -> AgentResult:
        return await self.fallback_agent.run(input, session=session, hooks=hooks)

    def _annotate(
        self,
        result: AgentResult,
        used_fallback: bool,
        primary_error: Optional[BaseException] = None,
    ) -> AgentResult:
        metadata = {
            **result.metadata,
            "resilience.used_fallback": used_fallback,
            "resilience.has_retry": self.retry_policy is not None,
            "resilience.has_circuit_breaker": self.circuit_breaker is not None,
            "resilience.has_timeout": self.timeout is not None,
            "resilience.has_rate_limiter": self.rate_limiter is not None,
        }
        if self.retry_policy is not None:
            metadata["resilience.max_retry_attempts"] = self.retry_policy.max_attempts
        if primary_error is not None:
            metadata["resilience.primary_error"] = str(primary_error)
        return dataclasses.replace(result, metadata=metadata)

    def __repr__(self) -> str:
        return f"<ResilientAgent base={self.name}>"
