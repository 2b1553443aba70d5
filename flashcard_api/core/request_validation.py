"""Request validation for the chat endpoint.

Covers the checks that do not involve rate limiting or authentication:
- HTTP method (must be POST), checked before anything else
- JSON payload shape (non-empty ``message``), checked last
"""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request
from pydantic import ValidationError

from flashcard_api.core.errors import (
    METHOD_NOT_ALLOWED_MESSAGE,
    MESSAGE_REQUIRED_MESSAGE,
    MethodNotAllowedAppError,
    ValidationAppError,
)
from flashcard_api.schemas.chat import ChatRequest

logger = logging.getLogger(__name__)

ALLOWED_METHOD = "POST"


async def enforce_post_method(request: Request) -> None:
    """FastAPI dependency rejecting every method except POST.

    Raises:
        MethodNotAllowedAppError: For any other method.
    """
    if request.method != ALLOWED_METHOD:
        logger.info(
            "request_validation.method_not_allowed",
            extra={"method": request.method, "path": request.url.path},
        )
        raise MethodNotAllowedAppError(
            code="method_not_allowed",
            message=METHOD_NOT_ALLOWED_MESSAGE,
            details={"method": request.method},
        )


def parse_chat_request(payload: Any) -> ChatRequest:
    """Validate a decoded JSON body into a ChatRequest.

    A missing, empty or non-string ``message`` and a body that is not a JSON
    object all produce the same error.

    Args:
        payload: Decoded request body.

    Returns:
        ChatRequest with a non-empty message.

    Raises:
        ValidationAppError: If the payload has no usable message.
    """
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as exc:
        logger.info(
            "request_validation.invalid_payload",
            extra={"error_count": exc.error_count()},
        )
        raise ValidationAppError(
            code="message_required",
            message=MESSAGE_REQUIRED_MESSAGE,
        ) from exc


async def read_chat_request(request: Request) -> ChatRequest:
    """Read and validate the chat request body.

    Args:
        request: FastAPI request.

    Returns:
        ChatRequest parsed from the JSON body.

    Raises:
        ValidationAppError: If the body is not JSON or has no usable message.
    """
    body = await request.body()
    if not body:
        return parse_chat_request(None)

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.info(
            "request_validation.invalid_json",
            extra={"body_bytes": len(body)},
        )
        raise ValidationAppError(
            code="message_required",
            message=MESSAGE_REQUIRED_MESSAGE,
        ) from exc

    return parse_chat_request(payload)
