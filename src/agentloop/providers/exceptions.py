"""
Provider error mapping for agentloop.

Translates HTTP statuses, stream error events and LiteLLM exceptions into
the agentloop error taxonomy, and classifies failures for fallback decisions.
"""

import json
from enum import Enum
from typing import Any

import httpx

from agentloop.exceptions import (
    AgentError,
    AuthenticationError,
    ContentFilteredError,
    GenerationFailedError,
    InferenceProviderUnavailableError,
    InvalidInputError,
    ModelNotAvailableError,
    RateLimitExceededError,
)
from agentloop.streaming.events import StreamError, StreamErrorKind


class FailureType(Enum):
    """Classification of provider failures for fallback decisions."""

    RATE_LIMIT = "rate_limit"
    AUTH_ERROR = "auth_error"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    CONTEXT_LENGTH = "context_length"
    INVALID_REQUEST = "invalid_request"
    MODEL_NOT_FOUND = "model_not_found"
    UNKNOWN = "unknown"


def error_for_status(
    status_code: int,
    body: str = "",
    headers: httpx.Headers | dict[str, str] | None = None,
    provider: str | None = None,
    model: str | None = None,
) -> AgentError:
    """
    Map an HTTP error status to an agentloop error.

    Args:
        status_code: HTTP status code.
        body: Response body, used for the error message.
        headers: Response headers; Retry-After is honoured for 429.
        provider: Provider name for context.
        model: Requested model, reported for 404.

    Returns:
        The error to raise.
    """
    message = _error_message(body) or f"HTTP {status_code}"

    if status_code == 401:
        return AuthenticationError("Invalid API key", provider=provider)
    if status_code == 429:
        return RateLimitExceededError(retry_after=_retry_after(headers), provider=provider)
    if status_code == 400:
        return InvalidInputError(message)
    if status_code == 404:
        return ModelNotAvailableError(model or message)
    if 500 <= status_code < 600:
        return InferenceProviderUnavailableError(f"Server error ({status_code}): {message}", provider=provider)
    return GenerationFailedError(f"HTTP {status_code}: {message}", status_code=status_code)


def error_for_stream_event(event: StreamError, provider: str | None = None) -> AgentError:
    """Map a stream error event to an agentloop error."""
    kind = event.kind
    if kind == StreamErrorKind.AUTHENTICATION_FAILED:
        return AuthenticationError(event.message or "Invalid API key", provider=provider)
    if kind == StreamErrorKind.RATE_LIMITED:
        return RateLimitExceededError(provider=provider)
    if kind == StreamErrorKind.INVALID_REQUEST:
        return InvalidInputError(event.message)
    if kind == StreamErrorKind.CONTEXT_LENGTH:
        return InvalidInputError(f"Context length exceeded: {event.message}")
    if kind == StreamErrorKind.CONTENT_FILTERED:
        return ContentFilteredError(event.message)
    if kind == StreamErrorKind.MODEL_NOT_FOUND:
        return ModelNotAvailableError(event.message)
    return GenerationFailedError(f"Stream error ({kind.value}): {event.message}")


def error_for_litellm(error: Exception, provider: str | None = None, model: str | None = None) -> AgentError:
    """Map a LiteLLM exception to an agentloop error."""
    from litellm.exceptions import (
        APIConnectionError,
        AuthenticationError as LiteLLMAuthError,
        BadRequestError,
        ContentPolicyViolationError,
        ContextWindowExceededError,
        NotFoundError,
        RateLimitError as LiteLLMRateLimitError,
        ServiceUnavailableError,
        Timeout as LiteLLMTimeout,
    )

    if isinstance(error, AgentError):
        return error
    if isinstance(error, LiteLLMAuthError):
        return AuthenticationError(str(error), provider=provider)
    if isinstance(error, LiteLLMRateLimitError):
        return RateLimitExceededError(provider=provider)
    # Subclasses of BadRequestError, so checked first
    if isinstance(error, ContextWindowExceededError):
        return InvalidInputError(f"Context length exceeded: {error}")
    if isinstance(error, ContentPolicyViolationError):
        return ContentFilteredError(str(error))
    if isinstance(error, NotFoundError):
        return ModelNotAvailableError(model or str(error))
    if isinstance(error, BadRequestError):
        return InvalidInputError(str(error))
    if isinstance(error, (APIConnectionError, ServiceUnavailableError, LiteLLMTimeout)):
        return InferenceProviderUnavailableError(str(error), provider=provider)

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return error_for_status(status, str(error), provider=provider, model=model)
    return GenerationFailedError(str(error))


def classify_error(error: Exception) -> FailureType:
    """
    Classify an exception into a failure type for fallback decisions.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    # Imported lazily to keep module import cheap
    from litellm.exceptions import (
        APIConnectionError,
        APIError,
        AuthenticationError as LiteLLMAuthError,
        ContextWindowExceededError,
        NotFoundError,
        RateLimitError as LiteLLMRateLimitError,
        ServiceUnavailableError,
    )

    if isinstance(error, LiteLLMRateLimitError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, LiteLLMAuthError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ContextWindowExceededError):
        return FailureType.CONTEXT_LENGTH
    elif isinstance(error, NotFoundError):
        return FailureType.MODEL_NOT_FOUND
    elif isinstance(error, (APIConnectionError, ServiceUnavailableError)):
        return FailureType.NETWORK_ERROR
    elif isinstance(error, APIError):
        status = getattr(error, "status_code", None)
        if status and 500 <= status < 600:
            return FailureType.SERVER_ERROR
        elif status and 400 <= status < 500:
            return FailureType.INVALID_REQUEST
        return FailureType.UNKNOWN

    # httpx transport errors
    if isinstance(error, httpx.TransportError):
        return FailureType.NETWORK_ERROR

    # Our own taxonomy
    if isinstance(error, RateLimitExceededError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, AuthenticationError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ModelNotAvailableError):
        return FailureType.MODEL_NOT_FOUND
    elif isinstance(error, InvalidInputError):
        if "context length" in error.reason.lower():
            return FailureType.CONTEXT_LENGTH
        return FailureType.INVALID_REQUEST
    elif isinstance(error, InferenceProviderUnavailableError):
        return FailureType.SERVER_ERROR

    return FailureType.UNKNOWN


def should_retry(failure_type: FailureType) -> bool:
    """
    Determine if a failure type should trigger retry/fallback.

    Args:
        failure_type: The classified failure type.

    Returns:
        True if we should try again or try fallback providers.
    """
    # Auth errors need a config fix; invalid requests are malformed
    non_retriable = {
        FailureType.AUTH_ERROR,
        FailureType.INVALID_REQUEST,
    }
    return failure_type not in non_retriable


def _retry_after(headers: httpx.Headers | dict[str, str] | None) -> float | None:
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _error_message(body: str) -> str:
    if not body:
        return ""
    try:
        data: Any = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()[:500]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if data.get("message"):
            return str(data["message"])
    return body.strip()[:500]
