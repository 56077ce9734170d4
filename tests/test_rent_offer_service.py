"""Tests for cache-aside rent offer lookups and invalidation on writes."""

import pytest

from six_cities.core.errors import ValidationAppError
from six_cities.schemas.city import CreateCityDto
from six_cities.schemas.rent_offer import CreateRentOfferDto, UpdateRentOfferDto
from six_cities.services.rent_offer_service import RentOfferService


async def _city_id(city_repository, name: str = "Amsterdam") -> str:
    city = await city_repository.create(CreateCityDto(name=name, latitude=52.37, longitude=4.89).model_dump())
    return city.id


def _offer_dto(city_id: str, **overrides) -> CreateRentOfferDto:
    values = {
        "title": "Canal view apartment",
        "description": "Spacious apartment with a view on the canal.",
        "city_id": city_id,
        "user_id": "u1",
        "preview_image": "preview.jpg",
        "price": 1500,
    }
    values.update(overrides)
    return CreateRentOfferDto(**values)


class TestCreate:
    @pytest.mark.asyncio
    async def test_rejects_missing_city(self, rent_offer_service: RentOfferService, offer_repository) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await rent_offer_service.create(_offer_dto("missing"))

        assert exc_info.value.code == "city_not_found"
        assert exc_info.value.details["entity_id"] == "missing"
        assert offer_repository.calls["create"] == 0

    @pytest.mark.asyncio
    async def test_create_invalidates_lists(
        self, rent_offer_service: RentOfferService, city_repository, offer_repository
    ) -> None:
        city_id = await _city_id(city_repository)
        await rent_offer_service.create(_offer_dto(city_id))
        assert len(await rent_offer_service.find()) == 1
        assert len(await rent_offer_service.find_by_city_id(city_id)) == 1

        await rent_offer_service.create(_offer_dto(city_id, title="Second canal apartment"))

        assert len(await rent_offer_service.find()) == 2
        assert len(await rent_offer_service.find_by_city_id(city_id)) == 2
        assert offer_repository.calls["find"] == 4


class TestReads:
    @pytest.mark.asyncio
    async def test_find_by_id_is_cached(
        self, rent_offer_service: RentOfferService, city_repository, offer_repository
    ) -> None:
        offer = await rent_offer_service.create(_offer_dto(await _city_id(city_repository)))

        assert await rent_offer_service.find_by_id(offer.id) == offer
        assert await rent_offer_service.find_by_id(offer.id) == offer
        assert offer_repository.calls["find_by_id"] == 1

    @pytest.mark.asyncio
    async def test_list_is_cached_per_size(
        self, rent_offer_service: RentOfferService, city_repository, offer_repository
    ) -> None:
        city_id = await _city_id(city_repository)
        for n in range(3):
            await rent_offer_service.create(_offer_dto(city_id, title=f"Apartment number {n:02d}"))

        assert len(await rent_offer_service.find(2)) == 2
        assert len(await rent_offer_service.find(2)) == 2
        assert len(await rent_offer_service.find()) == 3
        assert offer_repository.calls["find"] == 2

    @pytest.mark.asyncio
    async def test_oversized_requests_share_the_clamped_key(
        self, rent_offer_service: RentOfferService, offer_repository
    ) -> None:
        await rent_offer_service.find(500)
        await rent_offer_service.find(100)

        assert offer_repository.calls["find"] == 1

    @pytest.mark.asyncio
    async def test_new_is_newest_first(self, rent_offer_service: RentOfferService, city_repository) -> None:
        city_id = await _city_id(city_repository)
        titles = [f"Apartment number {n:02d}" for n in range(5)]
        for title in titles:
            await rent_offer_service.create(_offer_dto(city_id, title=title))

        newest = await rent_offer_service.find_new()

        assert [o.title for o in newest] == list(reversed(titles))[:3]

    @pytest.mark.asyncio
    async def test_discussed_follows_comment_count(self, rent_offer_service: RentOfferService, city_repository) -> None:
        city_id = await _city_id(city_repository)
        quiet = await rent_offer_service.create(_offer_dto(city_id, title="Quiet apartment here"))
        busy = await rent_offer_service.create(_offer_dto(city_id, title="Busy apartment there"))
        assert [o.id for o in await rent_offer_service.find_discussed(1)] in ([quiet.id], [busy.id])

        await rent_offer_service.inc_comment_count(busy.id)
        await rent_offer_service.inc_comment_count(busy.id)

        discussed = await rent_offer_service.find_discussed(1)
        assert [o.id for o in discussed] == [busy.id]
        assert discussed[0].comment_count == 2
        assert (await rent_offer_service.find_by_id(busy.id)).comment_count == 2

    @pytest.mark.asyncio
    async def test_premium_by_city(self, rent_offer_service: RentOfferService, city_repository) -> None:
        amsterdam = await _city_id(city_repository)
        paris = await _city_id(city_repository, "Paris")
        await rent_offer_service.create(_offer_dto(amsterdam, is_premium=True))
        await rent_offer_service.create(_offer_dto(amsterdam, title="Ordinary apartment"))
        await rent_offer_service.create(_offer_dto(paris, is_premium=True))

        premium = await rent_offer_service.find_premium_by_city_id(amsterdam)

        assert len(premium) == 1
        assert premium[0].is_premium is True
        assert premium[0].city_id == amsterdam


class TestWrites:
    @pytest.mark.asyncio
    async def test_read_update_read_returns_new_value(
        self, rent_offer_service: RentOfferService, city_repository
    ) -> None:
        offer = await rent_offer_service.create(_offer_dto(await _city_id(city_repository)))
        await rent_offer_service.find_by_id(offer.id)
        await rent_offer_service.find()

        await rent_offer_service.update_by_id(offer.id, UpdateRentOfferDto(price=999))

        assert (await rent_offer_service.find_by_id(offer.id)).price == 999
        assert (await rent_offer_service.find())[0].price == 999

    @pytest.mark.asyncio
    async def test_moving_offer_invalidates_both_cities(
        self, rent_offer_service: RentOfferService, city_repository
    ) -> None:
        amsterdam = await _city_id(city_repository)
        paris = await _city_id(city_repository, "Paris")
        offer = await rent_offer_service.create(_offer_dto(amsterdam))
        assert len(await rent_offer_service.find_by_city_id(amsterdam)) == 1
        assert len(await rent_offer_service.find_by_city_id(paris)) == 0

        await rent_offer_service.update_by_id(offer.id, UpdateRentOfferDto(city_id=paris))

        assert len(await rent_offer_service.find_by_city_id(amsterdam)) == 0
        assert len(await rent_offer_service.find_by_city_id(paris)) == 1

    @pytest.mark.asyncio
    async def test_update_to_missing_city_is_rejected(
        self, rent_offer_service: RentOfferService, city_repository
    ) -> None:
        offer = await rent_offer_service.create(_offer_dto(await _city_id(city_repository)))

        with pytest.raises(ValidationAppError):
            await rent_offer_service.update_by_id(offer.id, UpdateRentOfferDto(city_id="missing"))

    @pytest.mark.asyncio
    async def test_update_and_delete_of_missing_offer_return_none(self, rent_offer_service: RentOfferService) -> None:
        assert await rent_offer_service.update_by_id("missing", UpdateRentOfferDto(price=500)) is None
        assert await rent_offer_service.delete_by_id("missing") is None
        assert await rent_offer_service.inc_comment_count("missing") is None

    @pytest.mark.asyncio
    async def test_delete_invalidates(self, rent_offer_service: RentOfferService, city_repository) -> None:
        city_id = await _city_id(city_repository)
        offer = await rent_offer_service.create(_offer_dto(city_id))
        await rent_offer_service.find_by_id(offer.id)
        await rent_offer_service.find_by_city_id(city_id)

        deleted = await rent_offer_service.delete_by_id(offer.id)

        assert deleted.id == offer.id
        assert await rent_offer_service.find_by_id(offer.id) is None
        assert await rent_offer_service.find_by_city_id(city_id) == []
        assert await rent_offer_service.exists(offer.id) is False

    @pytest.mark.asyncio
    async def test_writes_succeed_when_store_is_down(
        self, rent_offer_service: RentOfferService, city_repository, kv_store
    ) -> None:
        city_id = await _city_id(city_repository)
        kv_store.set_reachable(False)

        offer = await rent_offer_service.create(_offer_dto(city_id))
        updated = await rent_offer_service.update_by_id(offer.id, UpdateRentOfferDto(rooms=3))

        assert updated.rooms == 3
        assert (await rent_offer_service.find_by_id(offer.id)).rooms == 3
