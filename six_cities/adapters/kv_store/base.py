"""Key-value store interfaces.

The cache service and the rate limiter depend on this narrow capability
interface rather than on a concrete client, so Redis can be replaced by the
in-process adapter in tests and local development.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class StoreUnavailableError(Exception):
    """Raised when the store cannot serve an operation.

    Covers missing connections, connection errors and operations that exceed
    the configured timeout. Callers treat it as a transient failure.
    """

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason


@dataclass(frozen=True)
class IncrementResult:
    """Outcome of an atomic increment.

    Attributes:
        count: Counter value after the increment.
        ttl_ms: Remaining lifetime of the counter in milliseconds.
    """

    count: int
    ttl_ms: int


class AbstractKeyValueStore(ABC):
    """Interface for the shared key-value store."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Liveness flag: False until connected and after a failed operation."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""

    @abstractmethod
    async def probe(self) -> bool:
        """Check reachability, reconnecting if needed, and refresh the liveness flag.

        Never raises.
        """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store a value, expiring after ``ttl_seconds`` when given."""

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys in a single round trip and return how many existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return whether the key is present."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove every key in the store's database."""

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl_ms: int, amount: int = 1) -> IncrementResult:
        """Atomically increment a counter, setting its expiry when absent.

        The increment and the expiry setup happen in one store-side step so
        concurrent callers in different processes never lose an update.

        Args:
            key: Counter key.
            ttl_ms: Lifetime applied when the counter has no expiry yet.
            amount: Value added to the counter.

        Returns:
            IncrementResult with the new count and its remaining lifetime.
        """
