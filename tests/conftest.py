"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It points settings at the testing environment and the in-process store, and
provides in-memory repositories standing in for the system of record.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

# Set default env vars that all tests might need
os.environ.setdefault("REDIS_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("PASSWORD_BCRYPT_ROUNDS", "4")

import itertools
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, TypeVar

import pytest
import pytest_asyncio
from pydantic import BaseModel

from six_cities.adapters.kv_store import InMemoryKeyValueStore
from six_cities.adapters.repository import AbstractCityRepository, AbstractRepository, SortType
from six_cities.schemas.city import City, CityWithOfferCount
from six_cities.schemas.rent_offer import RentOffer
from six_cities.schemas.user import User
from six_cities.services.cache_service import CacheService
from six_cities.services.city_cache import CityCache
from six_cities.services.city_service import CityService
from six_cities.services.rent_offer_cache import RentOfferCache
from six_cities.services.rent_offer_service import RentOfferService
from six_cities.services.user_cache import UserCache
from six_cities.services.user_service import UserService

ModelT = TypeVar("ModelT", bound=BaseModel)


class FakeClock:
    """Deterministic clock; call it to read the time, advance it explicitly."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    return all(row.get(field) == value for field, value in filters.items())


class InMemoryRepository(AbstractRepository[ModelT]):
    """Dictionary-backed system of record that counts calls per operation."""

    def __init__(self, model: type[ModelT], *, defaults: Callable[[], dict[str, Any]] | None = None) -> None:
        self._model = model
        self._defaults = defaults or dict
        self._ids = itertools.count(1)
        self.rows: dict[str, dict[str, Any]] = {}
        self.calls: Counter[str] = Counter()

    def _to_model(self, row: Mapping[str, Any] | None) -> ModelT | None:
        return self._model.model_validate(dict(row)) if row is not None else None

    async def exists(self, entity_id: str) -> bool:
        self.calls["exists"] += 1
        return entity_id in self.rows

    async def find_by_id(self, entity_id: str) -> ModelT | None:
        self.calls["find_by_id"] += 1
        return self._to_model(self.rows.get(entity_id))

    async def find_one(self, filters: Mapping[str, Any]) -> ModelT | None:
        self.calls["find_one"] += 1
        for row in self.rows.values():
            if _matches(row, filters):
                return self._to_model(row)
        return None

    async def find(self, filters=None, *, sort=None, limit=None) -> list[ModelT]:
        self.calls["find"] += 1
        rows = [row for row in self.rows.values() if _matches(row, filters or {})]
        for field, direction in reversed(list(sort or [])):
            rows.sort(key=lambda row: row[field], reverse=direction is SortType.DOWN)
        if limit is not None:
            rows = rows[:limit]
        return [self._to_model(row) for row in rows]

    async def create(self, data: Mapping[str, Any]) -> ModelT:
        self.calls["create"] += 1
        entity_id = str(next(self._ids))
        row = {**self._defaults(), **data, "id": entity_id}
        self.rows[entity_id] = row
        return self._to_model(row)

    async def find_by_id_and_update(self, entity_id: str, changes: Mapping[str, Any]) -> ModelT | None:
        self.calls["find_by_id_and_update"] += 1
        row = self.rows.get(entity_id)
        if row is None:
            return None
        row.update(changes)
        return self._to_model(row)

    async def find_by_id_and_delete(self, entity_id: str) -> ModelT | None:
        self.calls["find_by_id_and_delete"] += 1
        return self._to_model(self.rows.pop(entity_id, None))

    async def increment(self, entity_id: str, field: str, amount: int = 1) -> ModelT | None:
        self.calls["increment"] += 1
        row = self.rows.get(entity_id)
        if row is None:
            return None
        row[field] = row.get(field, 0) + amount
        return self._to_model(row)


class InMemoryCityRepository(InMemoryRepository[City], AbstractCityRepository):
    def __init__(self, offers: InMemoryRepository[RentOffer]) -> None:
        super().__init__(City)
        self._offers = offers

    async def find_with_rent_offer_count(self, limit: int) -> list[CityWithOfferCount]:
        self.calls["find_with_rent_offer_count"] += 1
        counts = Counter(row["city_id"] for row in self._offers.rows.values())
        cities = [
            CityWithOfferCount(**row, rent_offer_count=counts[row["id"]])
            for row in self.rows.values()
        ]
        cities.sort(key=lambda city: city.rent_offer_count, reverse=True)
        return cities[:limit]


def _offer_defaults() -> Callable[[], dict[str, Any]]:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: {"created_at": start + timedelta(minutes=next(ticks)), "comment_count": 0}


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def kv_store(fake_clock: FakeClock) -> InMemoryKeyValueStore:
    store = InMemoryKeyValueStore(clock=fake_clock)
    await store.connect()
    return store


@pytest.fixture
def cache_service(kv_store: InMemoryKeyValueStore) -> CacheService:
    return CacheService(kv_store)


@pytest.fixture
def offer_repository() -> InMemoryRepository[RentOffer]:
    return InMemoryRepository(RentOffer, defaults=_offer_defaults())


@pytest.fixture
def city_repository(offer_repository: InMemoryRepository[RentOffer]) -> InMemoryCityRepository:
    return InMemoryCityRepository(offer_repository)


@pytest.fixture
def user_repository() -> InMemoryRepository[User]:
    return InMemoryRepository(User)


@pytest.fixture
def city_cache(cache_service: CacheService) -> CityCache:
    return CityCache(cache_service)


@pytest.fixture
def user_cache(cache_service: CacheService) -> UserCache:
    return UserCache(cache_service)


@pytest.fixture
def rent_offer_cache(cache_service: CacheService) -> RentOfferCache:
    return RentOfferCache(cache_service)


@pytest.fixture
def city_service(city_repository: InMemoryCityRepository, city_cache: CityCache) -> CityService:
    return CityService(city_repository, city_cache)


@pytest.fixture
def user_service(
    user_repository: InMemoryRepository[User],
    user_cache: UserCache,
    cache_service: CacheService,
) -> UserService:
    return UserService(user_repository, user_cache, cache_service)


@pytest.fixture
def rent_offer_service(
    offer_repository: InMemoryRepository[RentOffer],
    city_repository: InMemoryCityRepository,
    rent_offer_cache: RentOfferCache,
    city_cache: CityCache,
) -> RentOfferService:
    return RentOfferService(offer_repository, city_repository, rent_offer_cache, city_cache)
