"""Shared key-value store adapters.

``RedisKeyValueStore`` is the production adapter; ``InMemoryKeyValueStore``
satisfies the same interface for tests and single-process development.
"""

from six_cities.adapters.kv_store.base import (
    AbstractKeyValueStore,
    IncrementResult,
    StoreUnavailableError,
)
from six_cities.adapters.kv_store.in_memory import InMemoryKeyValueStore
from six_cities.adapters.kv_store.redis_store import RedisKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "IncrementResult",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "StoreUnavailableError",
]
