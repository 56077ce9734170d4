"""Tiered, store-backed rate limiting.

Each request is classified into one tier (first match wins):

1. ``auth``     - sign-in, sign-up and logout routes
2. ``upload``   - avatar, preview, image and upload routes
3. ``user_api`` - favorites and comments (any method), rentOffers and users
                  with a non-GET method
4. ``public``   - everything else

Every tier has its own budget and counter namespace, so one identity's usage
in one tier never affects another tier. ``user_api`` counts authenticated
callers by principal id; all other tiers count by normalised client address.

Lifecycle:
    The limiter is constructed synchronously, before the shared store is
    connected, and is usable immediately through in-process fallback
    counters. ``initialize()`` runs once the store connection attempt has
    finished and wires up the store-backed counters::

        UNINITIALIZED -> INITIALIZING -> READY <-> DEGRADED

    While DEGRADED (store lost) requests use the fallback counters and the
    store is probed at most every ``probe_interval_seconds``; a successful
    probe returns the limiter to READY. A store error on an individual
    request sends only that request down the fallback path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from six_cities.adapters.kv_store.base import AbstractKeyValueStore, StoreUnavailableError
from six_cities.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from six_cities.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from six_cities.adapters.rate_limit.store_backed import StoreFixedWindowRateLimiter
from six_cities.core.client_identity import ClientIdentity, address_identity, principal_identity
from six_cities.core.config import RateLimitSettings
from six_cities.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    AUTH = "auth"
    UPLOAD = "upload"
    USER_API = "user_api"
    PUBLIC = "public"


class LimiterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DEGRADED = "degraded"


AUTH_SEGMENTS = frozenset({"signin", "signup", "logout"})
UPLOAD_SEGMENTS = frozenset({"upload", "avatar", "preview", "image", "images"})
USER_API_SEGMENTS = frozenset({"favorites", "comments"})
USER_API_WRITE_SEGMENTS = frozenset({"rentOffers", "users"})

TIER_MESSAGES: dict[Tier, str] = {
    Tier.PUBLIC: "Too many requests from this IP, please try again later.",
    Tier.AUTH: "Too many authentication attempts, please try again later.",
    Tier.UPLOAD: "Too many file uploads, please try again later.",
    Tier.USER_API: "Too many requests for this user, please try again later.",
}


def classify(path: str, method: str) -> Tier:
    """Map a request path and method to its rate limit tier.

    Matching is done on whole path segments, in fixed priority order, so a
    path matching several tiers gets the first one.

    Examples:
        >>> classify("/users/signin", "POST")
        <Tier.AUTH: 'auth'>
        >>> classify("/users/42/avatar", "POST")
        <Tier.UPLOAD: 'upload'>
        >>> classify("/rentOffers", "GET")
        <Tier.PUBLIC: 'public'>
    """
    segments = {segment for segment in path.split("/") if segment}

    if segments & AUTH_SEGMENTS:
        return Tier.AUTH
    if segments & UPLOAD_SEGMENTS:
        return Tier.UPLOAD
    if segments & USER_API_SEGMENTS:
        return Tier.USER_API
    if segments & USER_API_WRITE_SEGMENTS and method.upper() != "GET":
        return Tier.USER_API
    return Tier.PUBLIC


@dataclass(frozen=True)
class TierPolicy:
    """Budget and window for one tier.

    Raises:
        ConfigurationAppError: If the budget or the window is not positive.
    """

    tier: Tier
    limit: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ConfigurationAppError(
                code="invalid_rate_limit_budget",
                message=f"Rate limit budget for tier '{self.tier.value}' must be positive",
                details={"setting": f"max_{self.tier.value}"},
            )
        if self.window_ms < 1:
            raise ConfigurationAppError(
                code="invalid_rate_limit_window",
                message="Rate limit window must be positive",
                details={"setting": "window_ms"},
            )

    @property
    def message(self) -> str:
        return TIER_MESSAGES[self.tier]


def build_tier_policies(cfg: RateLimitSettings) -> dict[Tier, TierPolicy]:
    """Build one TierPolicy per tier from settings."""
    budgets = {
        Tier.PUBLIC: cfg.max_public,
        Tier.AUTH: cfg.max_auth,
        Tier.UPLOAD: cfg.max_upload,
        Tier.USER_API: cfg.max_user_api,
    }
    return {
        tier: TierPolicy(tier=tier, limit=limit, window_ms=cfg.window_ms)
        for tier, limit in budgets.items()
    }


@dataclass(frozen=True)
class AdmitDecision:
    """Outcome of ``TieredRateLimiter.admit``."""

    tier: Tier
    identity: ClientIdentity
    result: RateLimitResult
    shared: bool

    @property
    def allowed(self) -> bool:
        return self.result.allowed

    @property
    def retry_after_seconds(self) -> int | None:
        return self.result.retry_after_seconds

    @property
    def message(self) -> str:
        return TIER_MESSAGES[self.tier]


class TieredRateLimiter:
    """Classifies requests and enforces per-tier, per-identity budgets."""

    def __init__(
        self,
        cfg: RateLimitSettings,
        store: AbstractKeyValueStore | None = None,
        *,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cfg = cfg
        self._store = store
        self._clock = clock
        self._monotonic = monotonic
        self._policies = build_tier_policies(cfg)
        self._fallback: dict[Tier, AbstractRateLimiter] = {
            tier: InMemoryFixedWindowRateLimiter(
                limit=policy.limit, window_ms=policy.window_ms, clock=clock
            )
            for tier, policy in self._policies.items()
        }
        self._shared: dict[Tier, AbstractRateLimiter] = {}
        self._state = LimiterState.UNINITIALIZED
        self._last_probe = float("-inf")

    @property
    def state(self) -> LimiterState:
        return self._state

    def policy(self, tier: Tier) -> TierPolicy:
        return self._policies[tier]

    async def initialize(self) -> None:
        """Wire the store-backed counters.

        Call after the store connection attempt has completed, successfully
        or not. Without a store the limiter stays on the fallback counters.
        """
        if self._state is not LimiterState.UNINITIALIZED or self._store is None:
            return
        self._set_state(LimiterState.INITIALIZING)

        self._shared = {
            tier: StoreFixedWindowRateLimiter(
                self._store,
                limit=policy.limit,
                window_ms=policy.window_ms,
                key_prefix=f"{self._cfg.store_prefix}:{tier.value}",
                clock=self._clock,
            )
            for tier, policy in self._policies.items()
        }
        if self._store.is_available:
            self._set_state(LimiterState.READY)
        else:
            self._last_probe = self._monotonic()
            self._set_state(LimiterState.DEGRADED)

    def resolve_identity(
        self,
        tier: Tier,
        *,
        client_address: str | None,
        principal_id: str | None = None,
    ) -> ClientIdentity:
        """Return the identity a request is counted against for ``tier``."""
        if tier is Tier.USER_API and principal_id:
            return principal_identity(principal_id)
        return address_identity(client_address, ipv6_subnet=self._cfg.ipv6_subnet)

    async def admit(
        self,
        *,
        path: str,
        method: str,
        client_address: str | None,
        principal_id: str | None = None,
    ) -> AdmitDecision:
        """Count the request and decide whether it may proceed.

        Never raises on store failures; those fall back to in-process counters.
        """
        tier = classify(path, method)
        identity = self.resolve_identity(
            tier, client_address=client_address, principal_id=principal_id
        )

        await self._refresh_state()

        if self._state is LimiterState.READY:
            try:
                result = await self._shared[tier].consume(identity.key)
            except StoreUnavailableError as exc:
                logger.warning(
                    "rate_limit.store_error",
                    extra={
                        "tier": tier.value,
                        "operation": exc.operation,
                        "reason": exc.reason,
                    },
                )
                if not self._store.is_available:
                    self._last_probe = self._monotonic()
                    self._set_state(LimiterState.DEGRADED)
            else:
                return AdmitDecision(tier=tier, identity=identity, result=result, shared=True)

        result = await self._fallback[tier].consume(identity.key)
        return AdmitDecision(tier=tier, identity=identity, result=result, shared=False)

    async def _refresh_state(self) -> None:
        """Apply READY <-> DEGRADED transitions from the store liveness flag."""
        if self._store is None:
            return

        if self._state is LimiterState.READY and not self._store.is_available:
            self._last_probe = self._monotonic()
            self._set_state(LimiterState.DEGRADED)
            return

        if self._state is LimiterState.DEGRADED:
            now = self._monotonic()
            if now - self._last_probe < self._cfg.probe_interval_seconds:
                return
            self._last_probe = now
            if await self._store.probe():
                self._set_state(LimiterState.READY)

    def _set_state(self, new_state: LimiterState) -> None:
        if new_state is self._state:
            return
        previous = self._state
        self._state = new_state
        log = logger.warning if new_state is LimiterState.DEGRADED else logger.info
        log(
            "rate_limiter.state_changed",
            extra={"from_state": previous.value, "to_state": new_state.value},
        )
