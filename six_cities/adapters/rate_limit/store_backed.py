"""Fixed-window rate limiter backed by the shared key-value store.

Each window is a single counter key created by the first request and expiring
``window_ms`` later. The increment and the expiry setup happen in one atomic
store call, so every process sharing the store sees the same count and no
concurrent update is lost.
"""

from __future__ import annotations

import time
from typing import Callable

from six_cities.adapters.kv_store.base import AbstractKeyValueStore
from six_cities.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult, build_result


class StoreFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter whose counters live in the shared store.

    ``consume`` propagates ``StoreUnavailableError``; the caller decides how to
    degrade.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        limit: int,
        window_ms: int,
        key_prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if not key_prefix:
            raise ValueError("key_prefix must be a non-empty string")

        self._store = store
        self._limit = limit
        self._window_ms = window_ms
        self._key_prefix = key_prefix
        self._clock = clock

    def storage_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        increment = await self._store.incr_with_expiry(
            self.storage_key(key), self._window_ms, amount=cost
        )
        return build_result(
            limit=self._limit,
            count=increment.count,
            now=self._clock(),
            reset_in_seconds=increment.ttl_ms / 1000,
        )
