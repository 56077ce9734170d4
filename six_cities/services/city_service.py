"""City lookups with cache-aside reads and invalidate-on-write."""

from __future__ import annotations

import logging

from six_cities.adapters.repository import AbstractCityRepository
from six_cities.schemas.city import City, CityWithOfferCount, CreateCityDto
from six_cities.services.city_cache import CityCache

logger = logging.getLogger(__name__)

MAX_CITIES_COUNT = 100


class CityService:
    """Read and write cities through the system of record and the city cache.

    Attributes:
        repository: System-of-record adapter for cities.
        cache: City cache helper.
    """

    def __init__(self, repository: AbstractCityRepository, cache: CityCache) -> None:
        self._repository = repository
        self._cache = cache

    async def create(self, dto: CreateCityDto) -> City:
        city = await self._repository.create(dto.model_dump())
        logger.info("city.created", extra={"city_id": city.id})
        await self._cache.invalidate_list()
        return city

    async def find_by_id(self, city_id: str) -> City | None:
        key = self._cache.by_id_key(city_id)
        cached = await self._cache.get_city(key)
        if cached is not None:
            return cached

        city = await self._repository.find_by_id(city_id)
        if city is not None:
            await self._cache.set_city(key, city)
        return city

    async def find_by_name(self, name: str) -> City | None:
        key = self._cache.by_name_key(name)
        cached = await self._cache.get_city(key)
        if cached is not None:
            return cached

        city = await self._repository.find_one({"name": name})
        if city is not None:
            await self._cache.set_city(key, city)
        return city

    async def find_by_name_or_create(self, name: str, dto: CreateCityDto) -> City:
        existing = await self.find_by_name(name)
        if existing is not None:
            return existing
        return await self.create(dto)

    async def find(self) -> list[CityWithOfferCount]:
        """Return cities sorted by rent offer count, most offers first."""

        cached = await self._cache.get_list()
        if cached is not None:
            return cached

        cities = await self._repository.find_with_rent_offer_count(MAX_CITIES_COUNT)
        await self._cache.set_list(cities)
        return cities

    async def exists(self, city_id: str) -> bool:
        return await self._repository.exists(city_id)
