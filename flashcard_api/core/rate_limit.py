"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: storage backend can be replaced (e.g., Redis) behind an
  abstract interface.

Rate limiting strategy:
- Fixed window per client IP, opened on the client's first request.
- Client IP comes from the first X-Forwarded-For entry, then X-Real-IP, then
  the transport peer, then the literal "unknown".
- Every request that reaches the limiter gets X-RateLimit-* headers, whether
  it ends up admitted, throttled or rejected by a later check.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, Request, Response

from flashcard_api.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from flashcard_api.adapters.rate_limit.in_memory import FixedWindowRateLimiter
from flashcard_api.core.config import settings
from flashcard_api.core.errors import RATE_LIMIT_EXCEEDED_MESSAGE, RateLimitAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"

# request.state attribute holding the RateLimitResult of the current request
RATE_LIMIT_STATE_ATTR = "rate_limit"


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int, int | None] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_ms,
        settings.app.rate_limit_sweep_interval_ms,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = FixedWindowRateLimiter(
            max_requests=settings.app.rate_limit_requests,
            window_ms=settings.app.rate_limit_window_ms,
            sweep_interval_ms=settings.app.rate_limit_sweep_interval_ms,
        )
        _limiter_config = config

    return _limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide limiter so the next request starts from scratch."""

    global _limiter, _limiter_config
    _limiter = None
    _limiter_config = None


def resolve_client_key(request: Request) -> str:
    """Derive the client identity used to partition rate limit state.

    Args:
        request: FastAPI request.

    Returns:
        str: Client IP, or "unknown" when nothing identifies the caller.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def format_reset_time(reset_time_ms: int) -> str:
    """Render epoch milliseconds as ISO-8601 UTC (e.g. 2024-01-01T00:00:00.000Z)."""
    seconds, millis = divmod(reset_time_ms, 1000)
    reset_at = datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(milliseconds=millis)
    return reset_at.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build the X-RateLimit-* headers (plus Retry-After when throttled)."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_time_ms),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def get_rate_limit_result(request: Request) -> RateLimitResult | None:
    """Return the limiter decision recorded for this request, if any."""
    return getattr(request.state, RATE_LIMIT_STATE_ATTR, None)


async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: Annotated[AbstractRateLimiter, Depends(get_rate_limiter)],
) -> RateLimitResult:
    """FastAPI dependency enforcing rate limits.

    Counts the request against the caller's window. The decision is stored on
    ``request.state`` so error responses produced later can carry the same
    headers, and is written to ``response`` for the success path.

    Args:
        request: FastAPI request.
        response: Response whose headers are merged into the final response.
        limiter: Process-wide limiter.

    Returns:
        RateLimitResult: The admitted decision.

    Raises:
        RateLimitAppError: When the caller exhausted its window.
    """

    client_key = resolve_client_key(request)
    request.state.client_key = client_key
    key_hash = _hash_limiter_key(client_key)

    result = limiter.check(client_key)
    setattr(request.state, RATE_LIMIT_STATE_ATTR, result)

    if result.allowed:
        response.headers.update(rate_limit_headers(result))
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_time_ms": result.reset_time_ms,
            },
        )
        return result

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_time_ms": result.reset_time_ms,
            "retry_after_s": result.retry_after_seconds,
        },
    )

    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message=RATE_LIMIT_EXCEEDED_MESSAGE,
        reset_time_ms=result.reset_time_ms,
    )
