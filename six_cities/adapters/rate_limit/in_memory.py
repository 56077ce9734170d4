"""In-memory fixed-window rate limiter.

Used as the fallback path when the shared store is unreachable or not yet
connected.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows start at the first request for a key, like the store-backed
  counters, so both paths agree on reset times.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from six_cities.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, build_result


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Important:
        This limiter is per-process only and is reset on restart. It exists so
        the API keeps some protection while the shared store is down.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_ms: Size of the fixed window in milliseconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_ms are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._limit = limit
        self._window_seconds = window_ms / 1000
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._last_purge = 0.0

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        """Get the current state for key or start a new window when expired."""
        state = self._state_by_key.get(key)
        if state is None or now >= state.window_start + self._window_seconds:
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _purge_expired_locked(self, now: float) -> None:
        expired = [
            key
            for key, state in self._state_by_key.items()
            if now >= state.window_start + self._window_seconds
        ]
        for key in expired:
            del self._state_by_key[key]

    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Args:
            key: Unique identifier for rate limiting.
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            if now - self._last_purge >= self._window_seconds:
                self._purge_expired_locked(now)
                self._last_purge = now
            state = self._get_or_reset_state(key, now)
            state.count += cost
            reset_in = state.window_start + self._window_seconds - now
            return build_result(limit=self._limit, count=state.count, now=now, reset_in_seconds=reset_in)

    def reset(self) -> None:
        """Drop all counters."""
        with self._lock:
            self._state_by_key.clear()
