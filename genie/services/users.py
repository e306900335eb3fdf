"""User read-through cache keyed by id and by email."""

from __future__ import annotations

import logging
from typing import Any, Optional

from genie.core.cache import Cache
from genie.core.keys import CacheKeys, TTL
from genie.core.metrics import record_store_error
from genie.core.store import StoreUnavailableError
from genie.domain.users import UserSnapshot
from genie.services.auth_cache import USER_TAG
from genie.services.directory import UserDirectory

logger = logging.getLogger(__name__)


def user_cache_key(*, user_id: Optional[str] = None, email: Optional[str] = None) -> str:
    if user_id:
        return CacheKeys.user_by_id(user_id)
    if email:
        return CacheKeys.user_by_email(email)
    raise ValueError("Either user_id or email must be provided")


class UserCache:
    """Cached user lookups; a hit by id also primes the by-email key and back."""

    def __init__(self, cache: Cache, directory: UserDirectory, *, ttl: int = TTL.MEDIUM) -> None:
        self.cache = cache
        self.directory = directory
        self.ttl = ttl

    async def get_user(
        self, *, user_id: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[UserSnapshot]:
        key = user_cache_key(user_id=user_id, email=email)

        try:
            entry = await self.cache.get_entry(key)
        except StoreUnavailableError as exc:
            record_store_error("get")
            logger.warning("User cache read failed, using directory: %s", exc)
            entry = None

        if entry is not None and entry.data and entry.is_fresh(self.cache.now_ms(), self.ttl):
            try:
                return UserSnapshot.from_dict(entry.data)
            except (KeyError, TypeError, ValueError):
                logger.warning("Dropping malformed cached user entry")
                await self.cache.delete(key)

        if user_id:
            record = await self.directory.get_user(user_id)
        else:
            record = await self.directory.get_user_by_email(email or "")
        # Missing users are not cached: signup must be visible immediately.
        if record is None:
            return None

        snapshot = record.snapshot()
        payload = snapshot.to_dict()
        await self.cache.set(CacheKeys.user_by_id(snapshot.id), payload, ttl=self.ttl, tags=(USER_TAG,))
        await self.cache.set(CacheKeys.user_by_email(snapshot.email), payload, ttl=self.ttl, tags=(USER_TAG,))
        return snapshot

    async def invalidate(self, *, user_id: Optional[str] = None, email: Optional[str] = None) -> int:
        keys = []
        if user_id:
            keys.extend([CacheKeys.user_by_id(user_id), CacheKeys.user(user_id)])
        if email:
            keys.append(CacheKeys.user_by_email(email))
        if not keys:
            return 0
        return await self.cache.delete(*keys)

    async def update_user(self, user_id: str, **changes: Any) -> UserSnapshot:
        """Write through the directory, then drop every cached copy of the user."""

        previous = await self.directory.get_user(user_id)
        updated = await self.directory.update_user(user_id, **changes)
        await self.invalidate(user_id=updated.id, email=updated.email)
        if previous is not None and previous.email != updated.email:
            await self.invalidate(email=previous.email)
        return updated.snapshot()

    async def get_user_data(self, user_id: str) -> Optional[dict[str, Any]]:
        """Dashboard read of a user profile, tagged ``user`` for bulk invalidation."""

        async def _load() -> Optional[dict[str, Any]]:
            record = await self.directory.get_user(user_id)
            return record.snapshot().to_dict() if record else None

        return await self.cache.cache(CacheKeys.user(user_id), _load, ttl=TTL.MEDIUM, tags=(USER_TAG,))


__all__ = ["UserCache", "user_cache_key"]
