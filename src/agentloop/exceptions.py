"""
Error taxonomy for agentloop.

Every error raised by the core derives from AgentError and carries enough
context (tool name, iteration count, "generation") to identify the subsystem
that failed.
"""

from typing import Any, Optional


class AgentError(Exception):
    """Base exception for agent execution errors."""

    retryable: bool = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# =============================================================================
# Input / Execution
# =============================================================================


class InvalidInputError(AgentError):
    """Input was empty or rejected by the backend as malformed."""

    retryable = False

    def __init__(self, reason: str):
        super().__init__(f"Invalid input: {reason}")
        self.reason = reason


class AgentCancelledError(AgentError):
    """The run was cancelled."""

    retryable = False

    def __init__(self, message: str = "Agent execution was cancelled"):
        super().__init__(message)


class AgentTimeoutError(AgentError):
    """The run or a wrapped operation exceeded its time budget."""

    retryable = False

    def __init__(self, duration: float, operation: str = "Agent execution"):
        super().__init__(f"{operation} timed out after {duration:g}s")
        self.duration = duration
        self.operation = operation


class MaxIterationsExceededError(AgentError):
    """The loop ran out of iterations before producing a final answer."""

    retryable = False

    def __init__(self, iterations: int):
        super().__init__(f"Agent exceeded maximum iterations ({iterations})")
        self.iterations = iterations


# =============================================================================
# Tools
# =============================================================================


class ToolNotFoundError(AgentError):
    """A tool call named a tool that is not registered."""

    retryable = False

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class InvalidToolArgumentsError(AgentError):
    """Arguments did not match the tool's parameter definitions."""

    retryable = False

    def __init__(self, tool_name: str, reason: str):
        super().__init__(f"Invalid arguments for tool '{tool_name}': {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ToolExecutionFailedError(AgentError):
    """A tool body raised, or a batch of tools failed."""

    def __init__(
        self,
        tool_name: str,
        underlying_error: str,
        errors: Optional[list[Exception]] = None,
    ):
        super().__init__(f"Tool '{tool_name}' failed: {underlying_error}")
        self.tool_name = tool_name
        self.underlying_error = underlying_error
        self.errors = errors or []


# =============================================================================
# Inference
# =============================================================================


class InferenceProviderUnavailableError(AgentError):
    """No provider configured, or the backend is transiently unavailable."""

    def __init__(self, reason: str, provider: Optional[str] = None):
        super().__init__(f"Inference provider unavailable: {reason}")
        self.reason = reason
        self.provider = provider


class AuthenticationError(InferenceProviderUnavailableError):
    """API key invalid or missing."""

    retryable = False


class GenerationFailedError(AgentError):
    """The model call failed or returned nothing usable."""

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(f"Generation failed: {reason}")
        self.reason = reason
        self.status_code = status_code


class ModelNotAvailableError(AgentError):
    """Requested model not found or not supported."""

    retryable = False

    def __init__(self, model: str):
        super().__init__(f"Model not available: {model}")
        self.model = model


class ContentFilteredError(AgentError):
    """The backend refused to produce content."""

    retryable = False

    def __init__(self, reason: str):
        super().__init__(f"Content filtered: {reason}")
        self.reason = reason


class RateLimitExceededError(AgentError):
    """Provider rate limit exceeded."""

    def __init__(self, retry_after: Optional[float] = None, provider: Optional[str] = None):
        if retry_after is not None:
            message = f"Rate limit exceeded, retry after {retry_after:g} seconds"
        else:
            message = "Rate limit exceeded"
        super().__init__(message)
        self.retry_after = retry_after
        self.provider = provider


# =============================================================================
# Resilience
# =============================================================================


class CircuitBreakerOpenError(AgentError):
    """Call rejected because the circuit breaker is open."""

    retryable = False

    def __init__(self, service_name: str):
        super().__init__(f"Circuit breaker is open for service: {service_name}")
        self.service_name = service_name


class AllFallbacksFailedError(AgentError):
    """Every step of a fallback chain failed."""

    def __init__(self, errors: list[str]):
        super().__init__(f"All fallback strategies failed. Errors: {'; '.join(errors)}")
        self.errors = errors


# =============================================================================
# Guardrails
# =============================================================================


class GuardrailTripwireError(AgentError):
    """Base class for guardrail tripwires."""

    retryable = False

    def __init__(
        self,
        message: str,
        guardrail_name: str,
        detail: Optional[str] = None,
        output_info: Any = None,
    ):
        super().__init__(message)
        self.guardrail_name = guardrail_name
        self.detail = detail
        self.output_info = output_info


class InputTripwireError(GuardrailTripwireError):
    """An agent input guardrail tripped."""

    def __init__(self, guardrail_name: str, detail: Optional[str] = None, output_info: Any = None):
        super().__init__(
            f"Input guardrail '{guardrail_name}' tripwire triggered: {detail or 'No message'}",
            guardrail_name,
            detail,
            output_info,
        )


class OutputTripwireError(GuardrailTripwireError):
    """An agent output guardrail tripped."""

    def __init__(
        self,
        guardrail_name: str,
        agent_name: str,
        detail: Optional[str] = None,
        output_info: Any = None,
    ):
        super().__init__(
            f"Output guardrail '{guardrail_name}' tripwire triggered for agent "
            f"'{agent_name}': {detail or 'No message'}",
            guardrail_name,
            detail,
            output_info,
        )
        self.agent_name = agent_name


class ToolInputTripwireError(GuardrailTripwireError):
    """A tool input guardrail tripped."""

    def __init__(
        self,
        guardrail_name: str,
        tool_name: str,
        detail: Optional[str] = None,
        output_info: Any = None,
    ):
        super().__init__(
            f"Tool input guardrail '{guardrail_name}' tripwire triggered for tool "
            f"'{tool_name}': {detail or 'No message'}",
            guardrail_name,
            detail,
            output_info,
        )
        self.tool_name = tool_name


class ToolOutputTripwireError(GuardrailTripwireError):
    """A tool output guardrail tripped."""

    def __init__(
        self,
        guardrail_name: str,
        tool_name: str,
        detail: Optional[str] = None,
        output_info: Any = None,
    ):
        super().__init__(
            f"Tool output guardrail '{guardrail_name}' tripwire triggered for tool "
            f"'{tool_name}': {detail or 'No message'}",
            guardrail_name,
            detail,
            output_info,
        )
        self.tool_name = tool_name


class GuardrailExecutionError(AgentError):
    """A guardrail itself raised while validating."""

    retryable = False

    def __init__(self, guardrail_name: str, underlying_error: str):
        super().__init__(f"Guardrail '{guardrail_name}' execution failed: {underlying_error}")
        self.guardrail_name = guardrail_name
        self.underlying_error = underlying_error


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether an error is worth retrying.

    Errors outside the taxonomy are treated as transient.

    Args:
        error: The exception raised by the operation.

    Returns:
        True if a retry may succeed.
    """
    if isinstance(error, AgentError):
        return error.retryable
    return isinstance(error, Exception)
