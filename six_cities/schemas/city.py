"""Pydantic schemas for cities."""

from pydantic import BaseModel, Field


class CreateCityDto(BaseModel):
    """Payload for creating a city."""

    name: str = Field(..., min_length=1, max_length=100)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class City(BaseModel):
    """City as stored in the system of record."""

    id: str
    name: str
    latitude: float
    longitude: float


class CityWithOfferCount(City):
    """City list row with the number of rent offers located in it."""

    rent_offer_count: int = Field(0, ge=0)
