"""Rate limiter interfaces.

The API should depend on these abstractions (not the concrete implementation)
so we can swap storage backends later (e.g., Redis with atomic increments)
with minimal changes.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Request counter for one client key within its current window.

    Attributes:
        count: Requests admitted in the current window.
        reset_time_ms: UNIX epoch milliseconds when the window ends.
    """

    count: int
    reset_time_ms: int


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_time_ms: UNIX epoch milliseconds when the current window resets.
        now_ms: Time the decision was taken, in epoch milliseconds.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time_ms: int
    now_ms: int

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until the window resets (0 if already due)."""
        return max(0, int(math.ceil((self.reset_time_ms - self.now_ms) / 1000)))


class AbstractRateLimitStore(ABC):
    """Storage for per-key rate limit entries."""

    @abstractmethod
    def get(self, key: str) -> RateLimitEntry | None:
        """Return the stored entry for key, if any."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, entry: RateLimitEntry) -> None:
        """Store entry for key, replacing any previous one."""
        raise NotImplementedError

    @abstractmethod
    def delete_expired(self, now_ms: int) -> int:
        """Remove entries whose window ended before now_ms.

        Returns:
            Number of removed entries.
        """
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        raise NotImplementedError


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check(self, key: str, now_ms: int | None = None) -> RateLimitResult:
        """Count one request for key and decide whether it is admitted.

        Args:
            key: Unique client identifier (e.g., IP address).
            now_ms: Optional decision time in epoch milliseconds; defaults
                to the limiter's clock.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
