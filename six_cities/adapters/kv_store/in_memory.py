"""In-process key-value store.

Used by the test suite in place of Redis and selectable for local development
with ``REDIS_BACKEND=memory``. State is per-process, so limits and cached
values are not shared between workers.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from six_cities.adapters.kv_store.base import (
    AbstractKeyValueStore,
    IncrementResult,
    StoreUnavailableError,
)


@dataclass
class _Entry:
    value: str
    expires_at: float | None


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dictionary-backed store with TTL support and a simulated outage switch.

    Attributes are guarded by a lock so the increment primitive stays atomic
    even when used from worker threads.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._data: dict[str, _Entry] = {}
        self._connected = False
        self._reachable = True

    @property
    def is_available(self) -> bool:
        return self._connected and self._reachable

    def set_reachable(self, reachable: bool) -> None:
        """Simulate the store going away (False) or coming back (True)."""
        self._reachable = reachable

    async def connect(self) -> None:
        if not self._reachable:
            raise StoreUnavailableError("connect", "unreachable")
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def probe(self) -> bool:
        if not self._connected and self._reachable:
            self._connected = True
        return self.is_available

    async def get(self, key: str) -> str | None:
        self._ensure_available("get")
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._ensure_available("set")
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            self._data[key] = _Entry(value=value, expires_at=expires_at)

    async def delete(self, *keys: str) -> int:
        self._ensure_available("delete")
        removed = 0
        with self._lock:
            for key in keys:
                if self._live_entry(key) is not None:
                    removed += 1
                self._data.pop(key, None)
        return removed

    async def exists(self, key: str) -> bool:
        self._ensure_available("exists")
        with self._lock:
            return self._live_entry(key) is not None

    async def flush(self) -> None:
        self._ensure_available("flush")
        with self._lock:
            self._data.clear()

    async def incr_with_expiry(self, key: str, ttl_ms: int, amount: int = 1) -> IncrementResult:
        self._ensure_available("incr_with_expiry")
        now = self._clock()
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                entry = _Entry(value="0", expires_at=None)
                self._data[key] = entry
            entry.value = str(int(entry.value) + amount)
            if entry.expires_at is None:
                entry.expires_at = now + ttl_ms / 1000
            remaining_ms = max(0, math.ceil((entry.expires_at - now) * 1000))
            return IncrementResult(count=int(entry.value), ttl_ms=remaining_ms)

    def _ensure_available(self, operation: str) -> None:
        if not self._connected:
            raise StoreUnavailableError(operation, "not connected")
        if not self._reachable:
            raise StoreUnavailableError(operation, "unreachable")

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry
