"""Rent offer lookups with cache-aside reads and invalidate-on-write.

Offer writes invalidate the by-id entry, the global lists and the per-city
lists of every city the offer belonged to before or after the write. They
also invalidate the city list, which is sorted by offer count.
"""

from __future__ import annotations

import logging

from six_cities.adapters.repository import AbstractCityRepository, AbstractRepository, SortType
from six_cities.core.errors import ValidationAppError
from six_cities.schemas.rent_offer import (
    DEFAULT_DISCUSSED_OFFER_COUNT,
    DEFAULT_NEW_OFFER_COUNT,
    DEFAULT_OFFER_COUNT,
    CreateRentOfferDto,
    RentOffer,
    UpdateRentOfferDto,
)
from six_cities.services.city_cache import CityCache
from six_cities.services.rent_offer_cache import RentOfferCache, clamp_count

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", SortType.DOWN)]
MOST_DISCUSSED_FIRST = [("comment_count", SortType.DOWN)]


def _missing_city_error(city_id: str) -> ValidationAppError:
    return ValidationAppError(
        code="city_not_found",
        message="The city does not exist",
        details={"entity": "city", "entity_id": city_id, "field": "city_id"},
    )


class RentOfferService:
    """Read and write rent offers through the system of record and the caches.

    Attributes:
        repository: System-of-record adapter for rent offers.
        city_repository: Used to check that a referenced city exists.
        cache: Rent offer cache helper.
        city_cache: When given, its list is invalidated on offer writes.
    """

    def __init__(
        self,
        repository: AbstractRepository[RentOffer],
        city_repository: AbstractCityRepository,
        cache: RentOfferCache,
        city_cache: CityCache | None = None,
    ) -> None:
        self._repository = repository
        self._city_repository = city_repository
        self._cache = cache
        self._city_cache = city_cache

    async def create(self, dto: CreateRentOfferDto) -> RentOffer:
        """Publish an offer.

        Raises:
            ValidationAppError: If ``dto.city_id`` does not reference a city.
        """

        if not await self._city_repository.exists(dto.city_id):
            raise _missing_city_error(dto.city_id)

        offer = await self._repository.create(dto.model_dump())
        logger.info("rent_offer.created", extra={"offer_id": offer.id, "city_id": offer.city_id})
        await self._invalidate(offer.id, [offer.city_id])
        return offer

    async def find(self, count: int | None = None) -> list[RentOffer]:
        limit = clamp_count(count, DEFAULT_OFFER_COUNT)
        return await self._find_list(self._cache.list_key(limit), {}, NEWEST_FIRST, limit)

    async def find_by_id(self, offer_id: str) -> RentOffer | None:
        cached = await self._cache.get_offer(offer_id)
        if cached is not None:
            return cached

        offer = await self._repository.find_by_id(offer_id)
        if offer is not None:
            await self._cache.set_offer(offer)
        return offer

    async def find_by_city_id(self, city_id: str, count: int | None = None) -> list[RentOffer]:
        limit = clamp_count(count, DEFAULT_OFFER_COUNT)
        return await self._find_list(
            self._cache.city_key(city_id, limit), {"city_id": city_id}, NEWEST_FIRST, limit
        )

    async def find_premium_by_city_id(self, city_id: str, count: int | None = None) -> list[RentOffer]:
        limit = clamp_count(count, DEFAULT_OFFER_COUNT)
        return await self._find_list(
            self._cache.premium_key(city_id, limit),
            {"city_id": city_id, "is_premium": True},
            NEWEST_FIRST,
            limit,
        )

    async def find_new(self, count: int | None = None) -> list[RentOffer]:
        limit = clamp_count(count, DEFAULT_NEW_OFFER_COUNT)
        return await self._find_list(self._cache.new_key(limit), {}, NEWEST_FIRST, limit)

    async def find_discussed(self, count: int | None = None) -> list[RentOffer]:
        limit = clamp_count(count, DEFAULT_DISCUSSED_OFFER_COUNT)
        return await self._find_list(self._cache.discussed_key(limit), {}, MOST_DISCUSSED_FIRST, limit)

    async def update_by_id(self, offer_id: str, dto: UpdateRentOfferDto) -> RentOffer | None:
        """Apply a partial update; returns None when the offer does not exist.

        Raises:
            ValidationAppError: If the update moves the offer to a missing city.
        """

        changes = dto.model_dump(exclude_unset=True)
        new_city_id = changes.get("city_id")
        if new_city_id is not None and not await self._city_repository.exists(new_city_id):
            raise _missing_city_error(new_city_id)

        previous = await self._repository.find_by_id(offer_id)
        if previous is None:
            return None

        offer = await self._repository.find_by_id_and_update(offer_id, changes)
        if offer is None:
            return None

        await self._invalidate(offer_id, [previous.city_id, offer.city_id])
        logger.info("rent_offer.updated", extra={"offer_id": offer_id})
        return offer

    async def delete_by_id(self, offer_id: str) -> RentOffer | None:
        offer = await self._repository.find_by_id_and_delete(offer_id)
        if offer is None:
            return None

        await self._invalidate(offer_id, [offer.city_id])
        logger.info("rent_offer.deleted", extra={"offer_id": offer_id})
        return offer

    async def inc_comment_count(self, offer_id: str) -> RentOffer | None:
        offer = await self._repository.increment(offer_id, "comment_count", 1)
        if offer is None:
            return None

        await self._cache.invalidate_offer(offer_id, [offer.city_id])
        return offer

    async def exists(self, offer_id: str) -> bool:
        return await self._repository.exists(offer_id)

    async def _find_list(
        self,
        key: str,
        filters: dict[str, object],
        sort: list[tuple[str, SortType]],
        limit: int,
    ) -> list[RentOffer]:
        cached = await self._cache.get_offers(key)
        if cached is not None:
            return cached

        offers = await self._repository.find(filters, sort=sort, limit=limit)
        await self._cache.set_offers(key, offers)
        return offers

    async def _invalidate(self, offer_id: str, city_ids: list[str]) -> None:
        await self._cache.invalidate_offer(offer_id, city_ids)
        if self._city_cache is not None:
            await self._city_cache.invalidate_list()
