"""Resilience policies: retry, circuit breaker, fallback, timeout and rate limiting."""

from agentloop.resilience.agent import ResilientAgent
from agentloop.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerStatistics,
    CircuitState,
)
from agentloop.resilience.fallback import ExecutionResult, Fallback, FallbackChain
from agentloop.resilience.rate_limiter import RateLimiter
from agentloop.resilience.retry import (
    Backoff,
    ExponentialBackoff,
    FixedBackoff,
    ImmediateBackoff,
    LinearBackoff,
    RetryPolicy,
)
from agentloop.resilience.timeout import Timeout

__all__ = [
    "Backoff",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitBreakerStatistics",
    "CircuitState",
    "ExecutionResult",
    "ExponentialBackoff",
    "Fallback",
    "FallbackChain",
    "FixedBackoff",
    "ImmediateBackoff",
    "LinearBackoff",
    "RateLimiter",
    "ResilientAgent",
    "RetryPolicy",
    "Timeout",
]
