"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

The ``message`` of each error is the exact text rendered to the client. Any
diagnostic context goes into ``details``, which is logged but never rendered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict

# Client-facing messages
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed"
RATE_LIMIT_EXCEEDED_MESSAGE = "Rate limit exceeded"
AUTH_HEADER_REQUIRED_MESSAGE = "Authorization header required"
INVALID_API_KEY_MESSAGE = "Invalid API key"
MESSAGE_REQUIRED_MESSAGE = "Message is required"
UPSTREAM_FAILURE_MESSAGE = "Failed to get response from AI"


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability.

    Fields are optional to keep shapes consistent without forcing every
    error to fill every key.
    """

    hint: str
    method: str
    client_key: str
    http_status: int
    error_type: str
    error_msg: str
    model: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class MethodNotAllowedAppError(AppError):
    """Raised when the endpoint is called with anything but POST."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client exhausted its quota for the current window.

    Attributes:
        reset_time_ms: UNIX epoch milliseconds when the window resets.
    """

    reset_time_ms: int = 0


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class LLMAppError(AppError):
    """Raised when LLM provider/client operations fail."""


class UpstreamStatusError(LLMAppError):
    """Upstream answered with a non-success HTTP status."""


class EmptyResponseError(LLMAppError):
    """Upstream call succeeded but returned no usable content."""


class UpstreamTransportError(LLMAppError):
    """Upstream call failed before a usable response was received."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""
