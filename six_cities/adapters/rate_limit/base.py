"""Rate limiter interfaces.

The tiered limiter depends on this abstraction (not the concrete
implementation) so store-backed counters and in-process fallback counters are
interchangeable per request.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


def build_result(*, limit: int, count: int, now: float, reset_in_seconds: float) -> RateLimitResult:
    """Build a RateLimitResult from the post-increment counter value.

    Args:
        limit: Budget for the window.
        count: Counter value including the current request.
        now: Current UNIX time in seconds.
        reset_in_seconds: Time until the window resets.

    Returns:
        Allowed result while ``count <= limit``, blocked result otherwise.
    """
    reset_in_seconds = max(0.0, reset_in_seconds)
    reset_at = int(math.ceil(now + reset_in_seconds))
    remaining = max(0, limit - count)
    if count <= limit:
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=None,
        )
    return RateLimitResult(
        allowed=False,
        limit=limit,
        remaining=0,
        reset_at=reset_at,
        retry_after_seconds=max(1, int(math.ceil(reset_in_seconds))),
    )


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique identifier (e.g., tier-qualified client identity).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
