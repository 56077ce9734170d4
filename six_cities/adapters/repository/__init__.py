from six_cities.adapters.repository.base import (
    AbstractCityRepository,
    AbstractRepository,
    SortType,
)

__all__ = ["AbstractCityRepository", "AbstractRepository", "SortType"]
