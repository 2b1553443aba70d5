"""Bearer token authentication logic.

A single shared secret (``APP_BETA_API_KEY`` / ``BETA_API_KEY``) protects the
chat endpoint. Clients send it as ``Authorization: Bearer <key>``.

Design principles:
- Single Responsibility: Only handles token extraction and validation
- Dependency Injection: Used via FastAPI Depends() for loose coupling
- Configuration-driven: The secret is managed via env vars, not hardcoded
- Testable: Pure function logic with minimal dependencies
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, Request

from flashcard_api.core.config import settings
from flashcard_api.core.errors import (
    AUTH_HEADER_REQUIRED_MESSAGE,
    INVALID_API_KEY_MESSAGE,
    AuthenticationAppError,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def parse_bearer_token(authorization: str | None) -> str:
    """Extract the token from an Authorization header value.

    A missing header and a header using another scheme are the same failure.

    Args:
        authorization: Raw header value, or None.

    Returns:
        The header value with the "Bearer " prefix removed.

    Raises:
        AuthenticationAppError: If the header is missing or not a Bearer header.

    Examples:
        >>> parse_bearer_token("Bearer abc")
        'abc'
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationAppError(
            code="authorization_header_required",
            message=AUTH_HEADER_REQUIRED_MESSAGE,
        )
    return authorization[len(BEARER_PREFIX):]


def validate_api_key(provided_key: str) -> None:
    """Validate that provided key matches the configured shared secret.

    Pure validation logic without FastAPI dependencies for easy testing.
    The comparison is constant-time. When no secret is configured every key
    is rejected.

    Args:
        provided_key: Token extracted from the Authorization header.

    Raises:
        AuthenticationAppError: If the key does not match.
    """
    expected_key = settings.app.beta_api_key

    if not expected_key:
        logger.error(
            "api_key_validation_failed",
            extra={"reason": "api_key_not_configured"},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message=INVALID_API_KEY_MESSAGE,
            details={"hint": "Set APP_BETA_API_KEY (or BETA_API_KEY)"},
        )

    if not hmac.compare_digest(provided_key.encode(), expected_key.encode()):
        raise AuthenticationAppError(
            code="invalid_api_key",
            message=INVALID_API_KEY_MESSAGE,
        )


async def verify_bearer_token(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """FastAPI dependency for shared-secret authentication.

    Usage:
        @router.post("/protected", dependencies=[Depends(verify_bearer_token)])
        async def protected_endpoint():
            return {"message": "Authenticated!"}

    Args:
        request: FastAPI request (used for the client key in logs).
        authorization: Authorization header (injected by FastAPI).

    Raises:
        AuthenticationAppError: 401 when the header is missing/malformed or the
            key is wrong.
    """
    client_key = getattr(request.state, "client_key", None)

    try:
        token = parse_bearer_token(authorization)
    except AuthenticationAppError:
        logger.warning(
            "auth.missing_header",
            extra={
                "client_key": client_key,
                "authorization_present": authorization is not None,
            },
        )
        raise

    try:
        validate_api_key(token)
    except AuthenticationAppError:
        logger.warning(
            "auth.invalid_key",
            extra={
                "client_key": client_key,
                "api_key_hash": _hash_token(token),
            },
        )
        raise

    logger.debug("auth.success", extra={"client_key": client_key})
