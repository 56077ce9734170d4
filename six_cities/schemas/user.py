"""Pydantic schemas for users."""

from enum import Enum

from pydantic import BaseModel, EmailStr, Field

DEFAULT_AVATAR_FILE_NAME = "default-avatar.jpg"


class UserType(str, Enum):
    REGULAR = "regular"
    PRO = "pro"


class CreateUserDto(BaseModel):
    """Payload for registering a user."""

    first_name: str = Field(..., min_length=1, max_length=15)
    last_name: str = Field(..., min_length=1, max_length=15)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=12)
    type: UserType = UserType.REGULAR


class UpdateUserDto(BaseModel):
    """Partial profile update; unset fields are left untouched."""

    first_name: str | None = Field(None, min_length=1, max_length=15)
    last_name: str | None = Field(None, min_length=1, max_length=15)
    type: UserType | None = None


class User(BaseModel):
    """User as stored in the system of record."""

    id: str
    first_name: str
    last_name: str
    email: str
    avatar_path: str = DEFAULT_AVATAR_FILE_NAME
    type: UserType = UserType.REGULAR
    password_hash: str | None = None


class AvatarInfo(BaseModel):
    avatar_path: str
