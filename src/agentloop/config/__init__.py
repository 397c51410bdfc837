"""Configuration loading for agentloop."""

from agentloop.config.factory import (
    build_circuit_breaker,
    build_retry_policy,
    create_agent,
    create_provider,
)
from agentloop.config.loader import (
    ConfigurationError,
    clear_config_cache,
    get_config,
    load_config,
)
from agentloop.config.logging_setup import configure_logging
from agentloop.config.schema import (
    CircuitBreakerSettings,
    Config,
    LoggingConfig,
    ProviderConfig,
    ResilienceConfig,
    RetrySettings,
)

__all__ = [
    "CircuitBreakerSettings",
    "Config",
    "ConfigurationError",
    "LoggingConfig",
    "ProviderConfig",
    "ResilienceConfig",
    "RetrySettings",
    "build_circuit_breaker",
    "build_retry_policy",
    "clear_config_cache",
    "configure_logging",
    "create_agent",
    "create_provider",
    "get_config",
    "load_config",
]
