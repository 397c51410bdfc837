"""
Pydantic configuration schema for agentloop.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from agentloop.agent.models import AgentConfig

# =============================================================================
# Provider Configuration
# =============================================================================


class ProviderConfig(BaseModel):
    """Inference backend and model configuration."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["litellm", "openai_compatible"] = "litellm"
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    api_key_env: str | None = "OPENAI_API_KEY"
    fallback: list[str] = Field(default_factory=list)
    aliases: dict[str, str] = Field(default_factory=dict)
    request_timeout: float = Field(default=60.0, gt=0)
    system_prompt: str | None = None


# =============================================================================
# Resilience Configuration
# =============================================================================


class RetrySettings(BaseModel):
    """Retry policy applied around agent runs."""

    enabled: bool = True
    max_attempts: int = Field(default=3, ge=1, le=20)
    backoff: Literal["fixed", "linear", "exponential", "immediate"] = "exponential"
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=60.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: float = Field(default=0.0, ge=0.0, le=1.0)


class CircuitBreakerSettings(BaseModel):
    """Circuit breaker applied around agent runs."""

    enabled: bool = False
    failure_threshold: int = Field(default=5, ge=1)
    reset_timeout: float = Field(default=60.0, gt=0)
    success_threshold: int = Field(default=1, ge=1)
    half_open_max_requests: int = Field(default=1, ge=1)


class ResilienceConfig(BaseModel):
    """Resilience policies for agent runs."""

    model_config = ConfigDict(extra="allow")

    retry: RetrySettings = Field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    timeout: float | None = Field(default=None, gt=0)
    max_requests_per_minute: int | None = Field(default=None, ge=1)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# =============================================================================
# Root Configuration
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for agentloop.

    Configuration can be loaded from YAML files and environment variables,
    merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    agent: AgentConfig = Field(default_factory=AgentConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resolve_model_alias(self, model: str) -> str:
        """Resolve a model name or alias to the full model identifier."""
        return self.provider.aliases.get(model, model)
