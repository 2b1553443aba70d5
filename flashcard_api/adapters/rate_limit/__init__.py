"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory limiter and later migrate to Redis or another shared store without
changing the API layer.
"""

from flashcard_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitEntry,
    RateLimitResult,
)
from flashcard_api.adapters.rate_limit.in_memory import (
    FixedWindowRateLimiter,
    InMemoryRateLimitStore,
)

__all__ = [
    "AbstractRateLimitStore",
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RateLimitEntry",
    "RateLimitResult",
]
