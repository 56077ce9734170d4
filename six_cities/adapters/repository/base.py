"""System-of-record interfaces.

The document store is the authoritative collaborator behind the domain
services. Services depend on these abstractions only; the concrete adapter
(e.g. a MongoDB collection wrapper) is wired by the process bootstrap.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Generic, Mapping, Sequence, TypeVar

from six_cities.schemas.city import City, CityWithOfferCount

EntityT = TypeVar("EntityT")


class SortType(IntEnum):
    DOWN = -1
    UP = 1


Filters = Mapping[str, Any]
SortSpec = Sequence[tuple[str, SortType]]


class AbstractRepository(ABC, Generic[EntityT]):
    """Interface for one entity collection in the system of record."""

    @abstractmethod
    async def exists(self, entity_id: str) -> bool:
        ...

    @abstractmethod
    async def find_by_id(self, entity_id: str) -> EntityT | None:
        ...

    @abstractmethod
    async def find_one(self, filters: Filters) -> EntityT | None:
        """Return the first entity whose fields equal every filter value."""

    @abstractmethod
    async def find(
        self,
        filters: Filters | None = None,
        *,
        sort: SortSpec | None = None,
        limit: int | None = None,
    ) -> list[EntityT]:
        """Return matching entities, sorted and truncated as requested."""

    @abstractmethod
    async def create(self, data: Mapping[str, Any]) -> EntityT:
        """Insert a new entity; the store assigns id and timestamps."""

    @abstractmethod
    async def find_by_id_and_update(self, entity_id: str, changes: Mapping[str, Any]) -> EntityT | None:
        """Apply changes and return the updated entity, or None if absent."""

    @abstractmethod
    async def find_by_id_and_delete(self, entity_id: str) -> EntityT | None:
        """Delete and return the entity, or None if absent."""

    @abstractmethod
    async def increment(self, entity_id: str, field: str, amount: int = 1) -> EntityT | None:
        """Atomically add ``amount`` to a numeric field; None if absent."""


class AbstractCityRepository(AbstractRepository[City]):
    """City collection with the offer-count aggregation used by city lists."""

    @abstractmethod
    async def find_with_rent_offer_count(self, limit: int) -> list[CityWithOfferCount]:
        """Return up to ``limit`` cities sorted by rent offer count, descending."""
