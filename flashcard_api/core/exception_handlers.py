"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return flat JSON error bodies with proper HTTP
status codes.

Design:
- AppError subclasses → appropriate HTTP status (400, 401, 405, 429, 500)
- Router-level 405 (methods the route never declared) → same 405 body
- Unexpected Exception → generic 500 (safety net)
- Requests that went through the rate limiter keep their X-RateLimit-* headers
- Error details are logged, never returned
"""

import logging

from fastapi import Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from flashcard_api.core.errors import (
    METHOD_NOT_ALLOWED_MESSAGE,
    AppError,
    AuthenticationAppError,
    LLMAppError,
    MethodNotAllowedAppError,
    RateLimitAppError,
)
from flashcard_api.core.logging import get_request_id
from flashcard_api.core.rate_limit import (
    format_reset_time,
    get_rate_limit_result,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _status_for(exc: AppError) -> int:
    if isinstance(exc, MethodNotAllowedAppError):
        return 405
    if isinstance(exc, RateLimitAppError):
        return 429
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, LLMAppError):
        return 500
    # ValidationAppError and any other client fault
    return 400


def _headers_for(request: Request) -> dict[str, str] | None:
    result = get_rate_limit_result(request)
    if result is None:
        return None
    return rate_limit_headers(result)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with a flat JSON body.

    Routes domain errors to appropriate HTTP status codes:
    - MethodNotAllowedAppError → 405 Method Not Allowed
    - RateLimitAppError → 429 Too Many Requests
    - AuthenticationAppError → 401 Unauthorized
    - ValidationAppError → 400 Bad Request (client fault)
    - LLMAppError → 500 Internal Server Error (server fault)

    The body is ``{"error": exc.message}``; 429 responses add ``message``
    (human-readable reset time) and ``resetTime`` (epoch ms).

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error body.
    """
    status_code = _status_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    content: dict[str, object] = {"error": exc.message}
    if isinstance(exc, RateLimitAppError):
        content["message"] = (
            f"Too many requests. Rate limit resets at {format_reset_time(exc.reset_time_ms)}"
        )
        content["resetTime"] = exc.reset_time_ms

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=_headers_for(request),
    )


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Render router-level 405s like the domain 405, defer everything else.

    Methods outside the route's declared list never reach the route's
    dependencies, so Starlette raises its own 405 before ``enforce_post_method``
    can run.
    """
    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={"error": METHOD_NOT_ALLOWED_MESSAGE},
            headers=getattr(exc, "headers", None),
        )
    return await http_exception_handler(request, exc)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Catches any exception not handled by specific handlers.
    Logs detailed information for debugging while returning generic message.
    Prevents information leakage (no stack traces to client).

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={"error": INTERNAL_ERROR_MESSAGE},
        headers=_headers_for(request),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Must be called during app initialization, before route registration.
    Order matters: specific handlers registered before general fallback.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(starlette_http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
