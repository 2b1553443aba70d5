"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows start at a key's first request, not on a wall-clock boundary.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from flashcard_api.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitEntry,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Process-wide dict of client key -> entry."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> RateLimitEntry | None:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def delete_expired(self, now_ms: int) -> int:
        expired = [k for k, entry in self._entries.items() if now_ms > entry.reset_time_ms]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Each key gets ``max_requests`` admissions per window. The window opens on
    the first request seen for the key (or the first one after the previous
    window ended) and closes ``window_ms`` later; all quota comes back at once
    when it does. Denied requests are not counted.

    Expired entries are swept at most once per ``sweep_interval_ms`` so the
    store does not grow without bound. A swept entry would have been replaced
    on its next observation anyway, so sweeping never changes a decision.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_ms: int,
        store: AbstractRateLimitStore | None = None,
        sweep_interval_ms: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests: Maximum number of admitted requests per window.
            window_ms: Size of the fixed window in milliseconds.
            store: Entry storage; a fresh in-memory store when omitted.
            sweep_interval_ms: Minimum time between evictions of expired
                entries; defaults to ``window_ms``.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If max_requests, window_ms or sweep_interval_ms are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if sweep_interval_ms is not None and sweep_interval_ms < 1:
            raise ValueError("sweep_interval_ms must be >= 1")

        self._max_requests = max_requests
        self._window_ms = window_ms
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._sweep_interval_ms = sweep_interval_ms or window_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._next_sweep_ms: int | None = None

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _maybe_sweep_locked(self, now_ms: int) -> None:
        if self._next_sweep_ms is None:
            self._next_sweep_ms = now_ms + self._sweep_interval_ms
            return
        if now_ms < self._next_sweep_ms:
            return

        removed = self._store.delete_expired(now_ms)
        self._next_sweep_ms = now_ms + self._sweep_interval_ms
        if removed:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": removed, "entries": len(self._store)},
            )

    def check(self, key: str, now_ms: int | None = None) -> RateLimitResult:
        """Count one request for key and decide whether it is admitted.

        Args:
            key: Unique identifier for rate limiting (e.g., client IP).
            now_ms: Decision time in epoch milliseconds; read from the clock
                when omitted.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        if now_ms is None:
            now_ms = self._now_ms()

        with self._lock:
            self._maybe_sweep_locked(now_ms)

            entry = self._store.get(key)
            if entry is None or now_ms > entry.reset_time_ms:
                entry = RateLimitEntry(count=0, reset_time_ms=now_ms + self._window_ms)

            if entry.count >= self._max_requests:
                self._store.set(key, entry)
                return RateLimitResult(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reset_time_ms=entry.reset_time_ms,
                    now_ms=now_ms,
                )

            entry.count += 1
            self._store.set(key, entry)
            return RateLimitResult(
                allowed=True,
                limit=self._max_requests,
                remaining=self._max_requests - entry.count,
                reset_time_ms=entry.reset_time_ms,
                now_ms=now_ms,
            )
