"""Cache keys, TTLs and invalidation for users.

Profiles live for the configured TTL. Existence checks use a quarter of it
and avatar lookups half of it, since both change more often than profiles.
"""

from __future__ import annotations

import logging

from six_cities.core.config import CacheSettings, settings
from six_cities.schemas.user import AvatarInfo, User
from six_cities.services.cache_service import CacheService, generate_key, resolve_ttl

logger = logging.getLogger(__name__)

DEFAULT_USER_TTL_SECONDS = 7200

USER_PROFILE_PREFIX = "user:profile"
USER_AVATAR_PREFIX = "user:avatar"
USER_EXISTS_PREFIX = "user:exists"


class UserCache:
    def __init__(self, cache: CacheService, ttl_seconds: int | None = None) -> None:
        self._cache = cache
        self.ttl_seconds = resolve_ttl(ttl_seconds, DEFAULT_USER_TTL_SECONDS)

    @classmethod
    def from_settings(cls, cache: CacheService, cache_settings: CacheSettings | None = None) -> "UserCache":
        cfg = cache_settings or settings.cache
        return cls(cache, cfg.ttl_users)

    @property
    def exists_ttl_seconds(self) -> int:
        return max(1, self.ttl_seconds // 4)

    @property
    def avatar_ttl_seconds(self) -> int:
        return max(1, self.ttl_seconds // 2)

    @staticmethod
    def profile_key(user_id: str) -> str:
        return generate_key(USER_PROFILE_PREFIX, user_id)

    @staticmethod
    def profile_by_email_key(email: str) -> str:
        return generate_key(USER_PROFILE_PREFIX, "email", email)

    @staticmethod
    def avatar_key(user_id: str) -> str:
        return generate_key(USER_AVATAR_PREFIX, user_id)

    @staticmethod
    def exists_key(user_id: str) -> str:
        return generate_key(USER_EXISTS_PREFIX, user_id)

    async def get_profile(self, key: str) -> User | None:
        return await self._cache.get(key, User)

    async def set_profile(self, user: User) -> None:
        await self._cache.set(self.profile_key(user.id), user, self.ttl_seconds)

    async def set_profile_by_email(self, user: User) -> None:
        await self._cache.set(self.profile_by_email_key(user.email), user, self.ttl_seconds)

    async def get_exists(self, user_id: str) -> bool | None:
        return await self._cache.get(self.exists_key(user_id), bool)

    async def set_exists(self, user_id: str, exists: bool) -> None:
        await self._cache.set(self.exists_key(user_id), exists, self.exists_ttl_seconds)

    async def get_avatar(self, user_id: str) -> AvatarInfo | None:
        return await self._cache.get(self.avatar_key(user_id), AvatarInfo)

    async def set_avatar(self, user_id: str, avatar: AvatarInfo) -> None:
        await self._cache.set(self.avatar_key(user_id), avatar, self.avatar_ttl_seconds)

    async def invalidate_user(self, user_id: str, email: str | None = None) -> None:
        """Drop every entry derived from one user in a single round trip."""

        keys = [self.profile_key(user_id), self.avatar_key(user_id), self.exists_key(user_id)]
        if email is not None:
            keys.append(self.profile_by_email_key(email))
        await self._cache.delete(*keys)
        logger.debug("user_cache.user_invalidated", extra={"user_id": user_id})
