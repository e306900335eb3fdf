"""Session and user cache for the auth flows.

Sessions and users are read cache-first with the same stale-while-revalidate
contract as ``Cache.cache()``; a miss goes to the user directory. The cache
is never authoritative, so every write path here is best-effort.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from genie.core.cache import Cache
from genie.core.keys import CacheKeys, TTL
from genie.core.metrics import record_store_error
from genie.core.rate_limit import FailMode, RateLimitDecision, RateLimiter
from genie.core.store import StoreUnavailableError
from genie.domain.users import SessionRecord, UserSnapshot
from genie.services.directory import UserDirectory

logger = logging.getLogger(__name__)

SESSION_TAG = "session"
USER_TAG = "user"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_SECONDS = 300


class AuthCache:
    """Cache-first access to sessions and users plus auth rate limiting."""

    def __init__(
        self,
        cache: Cache,
        limiter: RateLimiter,
        directory: Optional[UserDirectory] = None,
        *,
        ttl: int = TTL.MEDIUM,
    ) -> None:
        self.cache = cache
        self.limiter = limiter
        self.directory = directory
        self.ttl = ttl

    # Sessions --------------------------------------------------------------

    async def get_session(self, session_token: str) -> Optional[SessionRecord]:
        key = CacheKeys.session(session_token)

        async def _load() -> Optional[dict[str, Any]]:
            if self.directory is None:
                return None
            record = await self.directory.get_session(session_token)
            return record.to_dict() if record else None

        payload = await self.cache.cache(key, _load, ttl=self.ttl, tags=(SESSION_TAG,))
        if payload is None:
            return None
        try:
            record = SessionRecord.from_dict(payload)
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping malformed cached session")
            await self.cache.delete(key)
            fresh = await _load()
            return SessionRecord.from_dict(fresh) if fresh else None

        if record.is_expired(self.cache.now_ms()):
            await self.remove_session(session_token)
            return None
        return record

    async def set_session(self, session_token: str, record: SessionRecord) -> None:
        await self.cache.set(
            CacheKeys.session(session_token),
            record.to_dict(),
            ttl=self.ttl,
            tags=(SESSION_TAG,),
        )

    async def remove_session(self, session_token: str) -> None:
        await self.cache.delete(CacheKeys.session(session_token))

    # Users -----------------------------------------------------------------

    async def get_user_by_id(self, user_id: str) -> Optional[UserSnapshot]:
        key = CacheKeys.user(user_id)

        async def _load() -> Optional[dict[str, Any]]:
            if self.directory is None:
                return None
            user = await self.directory.get_user(user_id)
            return user.snapshot().to_dict() if user else None

        payload = await self.cache.cache(key, _load, ttl=self.ttl, tags=(USER_TAG,))
        if payload is None:
            return None
        try:
            return UserSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError):
            logger.warning("Dropping malformed cached user", extra={"user_id": user_id})
            await self.cache.delete(key)
            return None

    async def set_user(self, user_id: str, user: UserSnapshot) -> None:
        await self.cache.set(CacheKeys.user(user_id), user.to_dict(), ttl=self.ttl, tags=(USER_TAG,))

    async def remove_user(self, user_id: str) -> None:
        await self.cache.delete(CacheKeys.user(user_id))

    async def invalidate_user_sessions(self, user_id: str) -> int:
        """Drop every cached session owned by ``user_id`` and the cached user.

        Scans all ``session:*`` keys; there is no per-user index.
        """

        removed = 0
        try:
            keys = await self.cache.store.keys(f"{CacheKeys.SESSION}*")
        except StoreUnavailableError as exc:
            record_store_error("keys")
            logger.error("Session invalidation scan failed: %s", exc, extra={"user_id": user_id})
            keys = []

        for key in keys:
            try:
                entry = await self.cache.get_entry(key)
            except StoreUnavailableError as exc:
                record_store_error("get")
                logger.warning("Session invalidation skipped %s: %s", key, exc)
                continue
            if entry is None or not isinstance(entry.data, dict):
                continue
            owner = (entry.data.get("user") or {}).get("id")
            if owner == user_id:
                removed += await self.cache.delete(key)

        await self.remove_user(user_id)
        logger.info("Invalidated %d cached sessions", removed, extra={"user_id": user_id})
        return removed

    # Rate limiting ---------------------------------------------------------

    async def hit_rate_limit(
        self,
        key: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        fail_mode: Optional[FailMode] = None,
    ) -> RateLimitDecision:
        return await self.limiter.hit(key, max_attempts, window_seconds, fail_mode=fail_mode)

    async def check_rate_limit(
        self,
        key: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        fail_mode: Optional[FailMode] = None,
    ) -> bool:
        decision = await self.hit_rate_limit(key, max_attempts, window_seconds, fail_mode=fail_mode)
        return decision.allowed

    async def remaining_attempts(self, key: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> int:
        return await self.limiter.remaining_attempts(key, max_attempts)

    async def clear_rate_limit(self, key: str) -> None:
        await self.limiter.clear(key)


__all__ = ["AuthCache", "SESSION_TAG", "USER_TAG"]
