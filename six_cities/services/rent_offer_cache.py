"""Cache keys, TTL and invalidation for rent offers.

List sizes are clamped to ``1..MAX_OFFER_COUNT`` before they become part of a
key. The set of possible list keys is therefore finite, and invalidation can
delete every size variant in one round trip instead of scanning the store.
"""

from __future__ import annotations

import logging
from typing import Iterable

from six_cities.core.config import CacheSettings, settings
from six_cities.schemas.rent_offer import MAX_OFFER_COUNT, RentOffer
from six_cities.services.cache_service import CacheService, generate_key, resolve_ttl

logger = logging.getLogger(__name__)

DEFAULT_RENT_OFFER_TTL_SECONDS = 1800

RENT_OFFERS_LIST_PREFIX = "rent-offers:list"
RENT_OFFERS_CITY_PREFIX = "rent-offers:city"
RENT_OFFERS_PREMIUM_PREFIX = "rent-offers:premium"
RENT_OFFERS_NEW_PREFIX = "rent-offers:new"
RENT_OFFERS_DISCUSSED_PREFIX = "rent-offers:discussed"
RENT_OFFER_INDIVIDUAL_PREFIX = "rent-offer:individual"

_GLOBAL_LIST_PREFIXES = (
    RENT_OFFERS_LIST_PREFIX,
    RENT_OFFERS_NEW_PREFIX,
    RENT_OFFERS_DISCUSSED_PREFIX,
)
_CITY_LIST_PREFIXES = (
    RENT_OFFERS_CITY_PREFIX,
    RENT_OFFERS_PREMIUM_PREFIX,
)


def clamp_count(count: int | None, default: int) -> int:
    """Clamp a requested list size into ``1..MAX_OFFER_COUNT``."""

    if count is None:
        count = default
    return max(1, min(count, MAX_OFFER_COUNT))


class RentOfferCache:
    """Rent offer entries: global lists, per-city lists and by-id lookups."""

    def __init__(self, cache: CacheService, ttl_seconds: int | None = None) -> None:
        self._cache = cache
        self.ttl_seconds = resolve_ttl(ttl_seconds, DEFAULT_RENT_OFFER_TTL_SECONDS)

    @classmethod
    def from_settings(
        cls, cache: CacheService, cache_settings: CacheSettings | None = None
    ) -> "RentOfferCache":
        cfg = cache_settings or settings.cache
        return cls(cache, cfg.ttl_rent_offers)

    @staticmethod
    def list_key(count: int) -> str:
        return generate_key(RENT_OFFERS_LIST_PREFIX, count)

    @staticmethod
    def city_key(city_id: str, count: int) -> str:
        return generate_key(RENT_OFFERS_CITY_PREFIX, city_id, count)

    @staticmethod
    def premium_key(city_id: str, count: int) -> str:
        return generate_key(RENT_OFFERS_PREMIUM_PREFIX, city_id, count)

    @staticmethod
    def new_key(count: int) -> str:
        return generate_key(RENT_OFFERS_NEW_PREFIX, count)

    @staticmethod
    def discussed_key(count: int) -> str:
        return generate_key(RENT_OFFERS_DISCUSSED_PREFIX, count)

    @staticmethod
    def by_id_key(offer_id: str) -> str:
        return generate_key(RENT_OFFER_INDIVIDUAL_PREFIX, offer_id)

    async def get_offers(self, key: str) -> list[RentOffer] | None:
        return await self._cache.get(key, list[RentOffer])

    async def set_offers(self, key: str, offers: list[RentOffer]) -> None:
        await self._cache.set(key, offers, self.ttl_seconds)

    async def get_offer(self, offer_id: str) -> RentOffer | None:
        return await self._cache.get(self.by_id_key(offer_id), RentOffer)

    async def set_offer(self, offer: RentOffer) -> None:
        await self._cache.set(self.by_id_key(offer.id), offer, self.ttl_seconds)

    def list_keys(self, city_ids: Iterable[str] = ()) -> list[str]:
        """Every list key that can hold offers, optionally scoped to cities."""

        sizes = range(1, MAX_OFFER_COUNT + 1)
        keys = [generate_key(prefix, size) for prefix in _GLOBAL_LIST_PREFIXES for size in sizes]
        for city_id in dict.fromkeys(city_ids):
            keys.extend(
                generate_key(prefix, city_id, size) for prefix in _CITY_LIST_PREFIXES for size in sizes
            )
        return keys

    async def invalidate_lists(self, city_ids: Iterable[str] = ()) -> None:
        """Drop global lists and the per-city lists of ``city_ids``."""

        city_ids = list(city_ids)
        await self._cache.delete(*self.list_keys(city_ids))
        logger.debug("rent_offer_cache.lists_invalidated", extra={"city_count": len(city_ids)})

    async def invalidate_offer(self, offer_id: str, city_ids: Iterable[str] = ()) -> None:
        """Drop one offer's by-id entry together with every list it may appear in."""

        await self._cache.delete(self.by_id_key(offer_id), *self.list_keys(city_ids))
        logger.debug("rent_offer_cache.offer_invalidated", extra={"offer_id": offer_id})
