"""
Builders that turn configuration sections into runtime objects.
"""

import logging
from typing import Any, Optional, Union

from agentloop.agent.loop import AgentLoop
from agentloop.config.schema import CircuitBreakerSettings, Config, ProviderConfig, RetrySettings
from agentloop.providers.base import InferenceProvider
from agentloop.providers.litellm_provider import LiteLLMProvider
from agentloop.providers.openai_compat import DEFAULT_BASE_URL, OpenAICompatibleProvider
from agentloop.resilience.agent import ResilientAgent
from agentloop.resilience.circuit_breaker import CircuitBreaker
from agentloop.resilience.rate_limiter import RateLimiter
from agentloop.resilience.retry import (
    Backoff,
    ExponentialBackoff,
    FixedBackoff,
    ImmediateBackoff,
    LinearBackoff,
    RetryPolicy,
)

logger = logging.getLogger(__name__)


def _build_backoff(settings: RetrySettings) -> Backoff:
    if settings.backoff == "fixed":
        return FixedBackoff(seconds=settings.base_delay)
    if settings.backoff == "linear":
        return LinearBackoff(
            initial=settings.base_delay,
            increment=settings.base_delay,
            max_delay=settings.max_delay,
        )
    if settings.backoff == "immediate":
        return ImmediateBackoff()
    return ExponentialBackoff(
        base_delay=settings.base_delay,
        max_delay=settings.max_delay,
        multiplier=settings.multiplier,
        jitter=settings.jitter,
    )


def build_retry_policy(settings: RetrySettings) -> Optional[RetryPolicy]:
    """Build a retry policy, or None when retries are disabled."""
    if not settings.enabled:
        return None
    return RetryPolicy(max_attempts=settings.max_attempts, backoff=_build_backoff(settings))


def build_circuit_breaker(
    settings: CircuitBreakerSettings, name: str = "default"
) -> Optional[CircuitBreaker]:
    """Build a circuit breaker, or None when it is disabled."""
    if not settings.enabled:
        return None
    return CircuitBreaker(
        name=name,
        failure_threshold=settings.failure_threshold,
        reset_timeout=settings.reset_timeout,
        success_threshold=settings.success_threshold,
        half_open_max_requests=settings.half_open_max_requests,
    )


def create_provider(settings: ProviderConfig) -> InferenceProvider:
    """
    Create the inference provider described by a provider section.

    Args:
        settings: Provider configuration.

    Returns:
        A LiteLLMProvider or an OpenAICompatibleProvider.
    """
    logger.info(f"Creating {settings.kind} provider for model '{settings.model}'")

    if settings.kind == "openai_compatible":
        model = settings.aliases.get(settings.model, settings.model)
        return OpenAICompatibleProvider(
            model=model,
            base_url=settings.base_url or DEFAULT_BASE_URL,
            api_key_env=settings.api_key_env,
            system_prompt=settings.system_prompt,
            timeout=settings.request_timeout,
        )

    return LiteLLMProvider(
        model=settings.model,
        aliases=settings.aliases,
        fallback=settings.fallback,
        system_prompt=settings.system_prompt,
        api_base=settings.base_url,
        request_timeout=settings.request_timeout,
    )


def create_agent(
    config: Config,
    provider: Optional[InferenceProvider] = None,
    **loop_kwargs: Any,
) -> Union[AgentLoop, ResilientAgent]:
    """
    Create an agent from a full configuration.

    The loop is wrapped in a ResilientAgent when any resilience policy
    is enabled.

    Args:
        config: Loaded configuration.
        provider: Provider to use instead of the configured one.
        **loop_kwargs: Extra AgentLoop arguments (tools, guardrails, hooks...).
    """
    loop = AgentLoop(
        provider=provider or create_provider(config.provider),
        config=config.agent,
        **loop_kwargs,
    )

    retry_policy = build_retry_policy(config.resilience.retry)
    breaker = build_circuit_breaker(config.resilience.circuit_breaker, name=config.agent.name)
    timeout = config.resilience.timeout
    per_minute = config.resilience.max_requests_per_minute
    limiter = RateLimiter.per_minute(per_minute) if per_minute else None

    if retry_policy is None and breaker is None and timeout is None and limiter is None:
        return loop

    return ResilientAgent(
        loop,
        retry_policy=retry_policy,
        circuit_breaker=breaker,
        timeout=timeout,
        rate_limiter=limiter,
    )
