"""Cache keys, TTL and invalidation for cities."""

from __future__ import annotations

import logging

from six_cities.core.config import CacheSettings, settings
from six_cities.schemas.city import City, CityWithOfferCount
from six_cities.services.cache_service import CacheService, generate_key, resolve_ttl

logger = logging.getLogger(__name__)

DEFAULT_CITY_TTL_SECONDS = 3600

CITY_LIST_KEY = "cities:list"
CITY_INDIVIDUAL_PREFIX = "city:individual"


class CityCache:
    """City entries: the offer-count list, by-id and by-name lookups."""

    def __init__(self, cache: CacheService, ttl_seconds: int | None = None) -> None:
        self._cache = cache
        self.ttl_seconds = resolve_ttl(ttl_seconds, DEFAULT_CITY_TTL_SECONDS)

    @classmethod
    def from_settings(cls, cache: CacheService, cache_settings: CacheSettings | None = None) -> "CityCache":
        cfg = cache_settings or settings.cache
        return cls(cache, cfg.ttl_cities)

    @staticmethod
    def list_key() -> str:
        return CITY_LIST_KEY

    @staticmethod
    def by_id_key(city_id: str) -> str:
        return generate_key(CITY_INDIVIDUAL_PREFIX, city_id)

    @staticmethod
    def by_name_key(name: str) -> str:
        return generate_key(CITY_INDIVIDUAL_PREFIX, "name", name)

    async def get_list(self) -> list[CityWithOfferCount] | None:
        return await self._cache.get(self.list_key(), list[CityWithOfferCount])

    async def set_list(self, cities: list[CityWithOfferCount]) -> None:
        await self._cache.set(self.list_key(), cities, self.ttl_seconds)

    async def get_city(self, key: str) -> City | None:
        return await self._cache.get(key, City)

    async def set_city(self, key: str, city: City) -> None:
        await self._cache.set(key, city, self.ttl_seconds)

    async def invalidate_list(self) -> None:
        await self._cache.delete(self.list_key())
        logger.debug("city_cache.list_invalidated")

    async def invalidate_city(self, city_id: str, name: str | None = None) -> None:
        """Drop the by-id entry, the by-name entry when known, and the list."""

        keys = [self.by_id_key(city_id), self.list_key()]
        if name is not None:
            keys.append(self.by_name_key(name))
        await self._cache.delete(*keys)
        logger.debug("city_cache.city_invalidated", extra={"city_id": city_id})
