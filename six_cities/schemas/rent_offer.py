"""Pydantic schemas for rent offers."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

DEFAULT_OFFER_COUNT = 60
DEFAULT_NEW_OFFER_COUNT = 3
DEFAULT_DISCUSSED_OFFER_COUNT = 3
MAX_OFFER_COUNT = 100


class OfferType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    ROOM = "room"
    HOTEL = "hotel"


class CreateRentOfferDto(BaseModel):
    """Payload for publishing a rent offer."""

    title: str = Field(..., min_length=10, max_length=100)
    description: str = Field(..., min_length=20, max_length=1024)
    city_id: str
    user_id: str
    preview_image: str
    is_premium: bool = False
    type: OfferType = OfferType.APARTMENT
    rooms: int = Field(1, ge=1, le=8)
    guests: int = Field(1, ge=1, le=10)
    price: int = Field(..., ge=100, le=100_000)


class UpdateRentOfferDto(BaseModel):
    """Partial offer update; unset fields are left untouched."""

    title: str | None = Field(None, min_length=10, max_length=100)
    description: str | None = Field(None, min_length=20, max_length=1024)
    city_id: str | None = None
    preview_image: str | None = None
    is_premium: bool | None = None
    type: OfferType | None = None
    rooms: int | None = Field(None, ge=1, le=8)
    guests: int | None = Field(None, ge=1, le=10)
    price: int | None = Field(None, ge=100, le=100_000)


class RentOffer(BaseModel):
    """Rent offer as stored in the system of record."""

    id: str
    title: str
    description: str
    city_id: str
    user_id: str
    preview_image: str
    is_premium: bool = False
    type: OfferType = OfferType.APARTMENT
    rooms: int = 1
    guests: int = 1
    price: int
    comment_count: int = 0
    created_at: datetime
