"""User lookups with cache-aside reads and invalidate-on-write."""

from __future__ import annotations

import logging
from typing import Any

from passlib.context import CryptContext

from six_cities.adapters.repository import AbstractRepository
from six_cities.core.config import settings
from six_cities.schemas.user import (
    DEFAULT_AVATAR_FILE_NAME,
    AvatarInfo,
    CreateUserDto,
    UpdateUserDto,
    User,
)
from six_cities.services.cache_service import CacheService
from six_cities.services.user_cache import UserCache

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password.bcrypt_rounds,
)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt at the configured work factor."""

    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


class UserService:
    """Read and write users through the system of record and the user cache."""

    def __init__(
        self,
        repository: AbstractRepository[User],
        cache: UserCache,
        cache_service: CacheService,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._cache_service = cache_service

    async def exists(self, user_id: str) -> bool:
        cached = await self._cache.get_exists(user_id)
        if cached is not None:
            return cached

        exists = await self._repository.exists(user_id)
        await self._cache.set_exists(user_id, exists)
        return exists

    async def create(self, dto: CreateUserDto) -> User:
        data: dict[str, Any] = dto.model_dump(exclude={"password"})
        data["avatar_path"] = DEFAULT_AVATAR_FILE_NAME
        data["password_hash"] = hash_password(dto.password)

        user = await self._repository.create(data)
        logger.info("user.created", extra={"user_id": user.id})
        # A negative existence check or an email miss may already be cached.
        await self._cache.invalidate_user(user.id, user.email)
        return user

    async def find_by_id(self, user_id: str) -> User | None:
        cached = await self._cache.get_profile(self._cache.profile_key(user_id))
        if cached is not None:
            return cached

        user = await self._repository.find_by_id(user_id)
        if user is not None:
            await self._cache.set_profile(user)
        return user

    async def find_by_email(self, email: str) -> User | None:
        """Look a user up by email, caching the result under both email and id."""

        cached = await self._cache.get_profile(self._cache.profile_by_email_key(email))
        if cached is not None:
            return cached

        user = await self._repository.find_one({"email": email})
        if user is not None:
            await self._cache.set_profile_by_email(user)
            await self._cache.set_profile(user)
        return user

    async def find_or_create(self, dto: CreateUserDto) -> User:
        existing = await self.find_by_email(dto.email)
        if existing is not None:
            return existing
        return await self.create(dto)

    async def update_by_id(self, user_id: str, dto: UpdateUserDto) -> User | None:
        changes = dto.model_dump(exclude_unset=True)
        user = await self._repository.find_by_id_and_update(user_id, changes)
        if user is None:
            return None

        await self._cache.invalidate_user(user_id, user.email)
        logger.info("user.updated", extra={"user_id": user_id})
        return user

    async def get_avatar_info(self, user_id: str) -> AvatarInfo | None:
        cached = await self._cache.get_avatar(user_id)
        if cached is not None:
            return cached

        user = await self._repository.find_by_id(user_id)
        if user is None:
            return None

        avatar = AvatarInfo(avatar_path=user.avatar_path)
        await self._cache.set_avatar(user_id, avatar)
        return avatar

    async def update_avatar(self, user_id: str, avatar_path: str) -> User | None:
        user = await self._repository.find_by_id_and_update(user_id, {"avatar_path": avatar_path})
        if user is None:
            return None

        await self._cache.invalidate_user(user_id, user.email)
        logger.info("user.avatar_updated", extra={"user_id": user_id})
        return user

    async def clear_all_caches(self) -> None:
        """Flush the whole store. Intended for maintenance and data migrations."""

        await self._cache_service.clear()
        logger.warning("user.caches_cleared")
