"""Cache-aside primitive over the shared key-value store.

Values are serialized with pydantic-core JSON and decoded back into the
requested type on read. Every store failure degrades silently: a failed
read is a miss and a failed write or delete is a no-op, so an unavailable
store only removes the speed-up.
"""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from six_cities.adapters.kv_store import AbstractKeyValueStore, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_SEPARATOR = ":"


@lru_cache(maxsize=128)
def _adapter_for(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _escape_part(part: object) -> str:
    return str(part).replace("%", "%25").replace(KEY_SEPARATOR, "%3A")


def generate_key(prefix: str, *parts: object) -> str:
    """Build a namespaced key ``{prefix}:{part}:{part}...``.

    Separator characters inside parts are percent-escaped, so distinct part
    tuples never map to the same key.
    """

    return KEY_SEPARATOR.join([prefix, *(_escape_part(part) for part in parts)])


def resolve_ttl(configured: int | None, default: int) -> int:
    """Return the configured TTL, or ``default`` when it is unset or not positive."""

    if configured is None or configured <= 0:
        return default
    return configured


class CacheService:
    """Typed get/set/delete over an ``AbstractKeyValueStore``.

    Attributes:
        store: Shared key-value store holding the serialized entries.
    """

    def __init__(self, store: AbstractKeyValueStore) -> None:
        self._store = store
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"CacheService(hits={self._hits}, misses={self._misses}, errors={self._errors})"

    generate_key = staticmethod(generate_key)

    async def get(self, key: str, type_: type[T] | Any) -> T | None:
        """Return the cached value decoded as ``type_``, or None on a miss.

        Args:
            key: Cache key.
            type_: Target type, e.g. ``City`` or ``list[City]``.

        Returns:
            The decoded value, or None when absent, undecodable or the store
            is unavailable.
        """

        try:
            raw = await self._store.get(key)
        except StoreUnavailableError as exc:
            self._record_error("get", key, exc)
            self._count_miss()
            return None
        except UnicodeDecodeError:
            # Bytes written by something other than this service
            self._count_miss()
            logger.warning("cache.decode_failed", extra={"cache_key": key, "reason": "not_utf8"})
            return None

        if raw is None:
            self._count_miss()
            logger.debug("cache.miss", extra={"cache_key": key, "reason": "not_found"})
            return None

        try:
            value = _adapter_for(type_).validate_json(raw)
        except ValidationError as exc:
            self._count_miss()
            logger.warning(
                "cache.decode_failed",
                extra={"cache_key": key, "error_count": exc.error_count()},
            )
            return None

        with self._lock:
            self._hits += 1
        logger.debug("cache.hit", extra={"cache_key": key})
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Serialize and store a value, expiring after ``ttl_seconds``."""

        try:
            payload = to_json(value).decode("utf-8")
        except PydanticSerializationError as exc:
            with self._lock:
                self._errors += 1
            logger.warning(
                "cache.encode_failed",
                extra={"cache_key": key, "value_type": type(value).__name__, "reason": str(exc)},
            )
            return

        try:
            await self._store.set(key, payload, ttl_seconds)
        except StoreUnavailableError as exc:
            self._record_error("set", key, exc)
            return
        logger.debug("cache.set", extra={"cache_key": key, "ttl_s": ttl_seconds})

    async def delete(self, *keys: str) -> None:
        """Remove entries in one round trip. Missing keys are ignored."""

        if not keys:
            return
        try:
            removed = await self._store.delete(*keys)
        except StoreUnavailableError as exc:
            self._record_error("delete", keys[0], exc)
            return
        logger.debug("cache.delete", extra={"key_count": len(keys), "removed": removed})

    async def exists(self, key: str) -> bool:
        try:
            return await self._store.exists(key)
        except StoreUnavailableError as exc:
            self._record_error("exists", key, exc)
            return False

    async def clear(self) -> None:
        """Flush the whole store. Maintenance only, never on a request path."""

        try:
            await self._store.flush()
        except StoreUnavailableError as exc:
            self._record_error("clear", "*", exc)
            return
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._errors = 0
        logger.info("cache.cleared")

    def stats(self) -> dict[str, int]:
        """Return lightweight cache counters without exposing values."""

        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "errors": self._errors}

    def _count_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def _record_error(self, operation: str, key: str, exc: StoreUnavailableError) -> None:
        with self._lock:
            self._errors += 1
        logger.debug(
            "cache.store_error",
            extra={"operation": operation, "cache_key": key, "reason": exc.reason},
        )
