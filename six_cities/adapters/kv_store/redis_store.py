"""Redis-backed key-value store using ``redis.asyncio``.

One client per process is shared by all in-flight requests; redis-py's
connection pool makes it safe for concurrent use. Every round trip is bounded
by ``operation_timeout_seconds`` and any connection error or timeout is
reported as ``StoreUnavailableError`` after flipping the liveness flag.
Commands the server rejects are reported the same way but leave the flag
untouched.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from six_cities.adapters.kv_store.base import (
    AbstractKeyValueStore,
    IncrementResult,
    StoreUnavailableError,
)
from six_cities.core.config import RedisSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that mean the server cannot be reached; anything else is a rejected command
_OUTAGE_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError)

# INCRBY and expiry setup run server-side in one step. A counter left without a
# TTL (e.g. by a crash between commands in an older deployment) is healed here.
_INCR_WITH_EXPIRY_SCRIPT = """
local current = redis.call('INCRBY', KEYS[1], ARGV[2])
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
  redis.call('PEXPIRE', KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {current, ttl}
"""


class RedisKeyValueStore(AbstractKeyValueStore):
    """Thin operational wrapper around a Redis connection."""

    def __init__(
        self,
        *,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        db: int = 0,
        connect_timeout_seconds: float = 2.0,
        operation_timeout_seconds: float = 0.5,
        client_factory: Callable[..., Redis] = Redis,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._db = db
        self._connect_timeout = connect_timeout_seconds
        self._operation_timeout = operation_timeout_seconds
        self._client_factory = client_factory
        self._client: Redis | None = None
        self._incr_script: Any = None
        self._available = False

    @classmethod
    def from_settings(cls, redis_settings: RedisSettings) -> "RedisKeyValueStore":
        return cls(
            host=redis_settings.host,
            port=redis_settings.port,
            password=redis_settings.password,
            db=redis_settings.db,
            connect_timeout_seconds=redis_settings.connect_timeout_seconds,
            operation_timeout_seconds=redis_settings.operation_timeout_seconds,
        )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RedisKeyValueStore(host={self._host!r}, port={self._port}, "
            f"db={self._db}, available={self._available})"
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None and self._available

    async def connect(self) -> None:
        """Create the client and verify it with a PING.

        Raises:
            StoreUnavailableError: If the server does not answer in time.
        """
        client = self._client_factory(
            host=self._host,
            port=self._port,
            password=self._password or None,
            db=self._db,
            decode_responses=True,
            socket_connect_timeout=self._connect_timeout,
            socket_timeout=self._operation_timeout,
        )
        try:
            await asyncio.wait_for(client.ping(), timeout=self._connect_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as exc:
            self._available = False
            logger.error(
                "kv_store.connect_failed",
                extra={
                    "host": self._host,
                    "port": self._port,
                    "db": self._db,
                    "error_type": type(exc).__name__,
                },
            )
            await client.aclose()
            raise StoreUnavailableError("connect", str(exc) or type(exc).__name__) from exc

        self._client = client
        self._incr_script = client.register_script(_INCR_WITH_EXPIRY_SCRIPT)
        self._available = True
        logger.info(
            "kv_store.connected",
            extra={"host": self._host, "port": self._port, "db": self._db},
        )

    async def disconnect(self) -> None:
        if self._client is None:
            return
        client = self._client
        self._client = None
        self._incr_script = None
        self._available = False
        await client.aclose()
        logger.info("kv_store.disconnected", extra={"host": self._host, "port": self._port})

    async def probe(self) -> bool:
        try:
            if self._client is None:
                await self.connect()
            else:
                await self._execute("ping", lambda client: client.ping())
        except StoreUnavailableError:
            return False
        return True

    async def get(self, key: str) -> str | None:
        return await self._execute("get", lambda client: client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        if ttl_seconds:
            await self._execute("set", lambda client: client.set(key, value, ex=ttl_seconds))
        else:
            await self._execute("set", lambda client: client.set(key, value))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._execute("delete", lambda client: client.delete(*keys)))

    async def exists(self, key: str) -> bool:
        return int(await self._execute("exists", lambda client: client.exists(key))) > 0

    async def flush(self) -> None:
        await self._execute("flush", lambda client: client.flushdb())

    async def incr_with_expiry(self, key: str, ttl_ms: int, amount: int = 1) -> IncrementResult:
        count, ttl = await self._execute(
            "incr_with_expiry",
            lambda client: self._incr_script(keys=[key], args=[ttl_ms, amount]),
        )
        return IncrementResult(count=int(count), ttl_ms=int(ttl))

    async def _execute(self, operation: str, call: Callable[[Redis], Awaitable[T]]) -> T:
        """Run one store round trip with the timeout-as-failure policy."""
        client = self._client
        if client is None:
            raise StoreUnavailableError(operation, "not connected")

        try:
            result = await asyncio.wait_for(call(client), timeout=self._operation_timeout)
        except _OUTAGE_ERRORS as exc:
            if self._available:
                logger.warning(
                    "kv_store.unavailable",
                    extra={"operation": operation, "error_type": type(exc).__name__},
                )
            self._available = False
            raise StoreUnavailableError(operation, str(exc) or type(exc).__name__) from exc
        except RedisError as exc:
            # e.g. WRONGTYPE: the server answered, so liveness is unchanged
            logger.warning(
                "kv_store.command_failed",
                extra={"operation": operation, "error_type": type(exc).__name__},
            )
            raise StoreUnavailableError(operation, str(exc) or type(exc).__name__) from exc

        if not self._available:
            logger.info("kv_store.recovered", extra={"operation": operation})
        self._available = True
        return result
