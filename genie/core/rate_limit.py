"""Fixed-window rate limiting on top of the key-value store.

Each check increments ``rate-limit:<key>``; the first increment starts the
window by setting the key expiry. The store's own key TTL resets the counter.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from genie.core.keys import CacheKeys
from genie.core.metrics import action_label, record_rate_limit, record_store_error
from genie.core.store import KeyValueStore, StoreUnavailableError

logger = logging.getLogger(__name__)


class FailMode(str, enum.Enum):
    """What a check answers when the store is unreachable."""

    OPEN = "open"  # allow the request
    CLOSED = "closed"  # deny the request

    @classmethod
    def parse(cls, value: "str | FailMode | None", default: "FailMode") -> "FailMode":
        if isinstance(value, FailMode):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return default


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    retry_after: int = 0
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimiter:
    """Counter-based limiter keyed by ``<action>:<identifier>`` strings."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        fail_mode: FailMode = FailMode.CLOSED,
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.fail_mode = fail_mode
        self.enabled = enabled

    async def hit(
        self,
        key: str,
        max_attempts: int,
        window_seconds: int,
        *,
        fail_mode: Optional[FailMode] = None,
    ) -> RateLimitDecision:
        """Count one attempt for ``key`` and decide whether it is allowed."""

        action = action_label(key)
        if not self.enabled:
            return RateLimitDecision(allowed=True, count=0, limit=max_attempts)

        rate_key = CacheKeys.rate_limit(key)
        try:
            count = await self.store.incr(rate_key)
            if count == 1:
                await self.store.expire(rate_key, window_seconds)
            allowed = count <= max_attempts
            retry_after = 0
            if not allowed:
                retry_after = await self.store.ttl(rate_key)
                if retry_after == -1:
                    # Counter lost its expiry (e.g. expire failed after incr).
                    await self.store.expire(rate_key, window_seconds)
                    retry_after = window_seconds
                retry_after = max(retry_after, 0)
        except StoreUnavailableError as exc:
            mode = fail_mode or self.fail_mode
            record_store_error("rate_limit")
            record_rate_limit(action, f"fail_{mode.value}")
            logger.error(
                "Rate limit store unavailable; failing %s",
                mode.value,
                extra={"action": action, "error": str(exc)},
            )
            return RateLimitDecision(
                allowed=mode is FailMode.OPEN,
                count=0,
                limit=max_attempts,
                retry_after=0 if mode is FailMode.OPEN else window_seconds,
                degraded=True,
            )

        record_rate_limit(action, "allowed" if allowed else "denied")
        if not allowed:
            logger.info("Rate limit exceeded", extra={"action": action, "count": count})
        return RateLimitDecision(
            allowed=allowed,
            count=count,
            limit=max_attempts,
            retry_after=retry_after,
        )

    async def check(
        self,
        key: str,
        max_attempts: int,
        window_seconds: int,
        *,
        fail_mode: Optional[FailMode] = None,
    ) -> bool:
        decision = await self.hit(key, max_attempts, window_seconds, fail_mode=fail_mode)
        return decision.allowed

    async def current(self, key: str) -> int:
        try:
            raw = await self.store.get(CacheKeys.rate_limit(key))
        except StoreUnavailableError as exc:
            record_store_error("rate_limit")
            logger.warning("Rate limit read failed: %s", exc)
            return 0
        try:
            return int(raw or 0)
        except ValueError:
            return 0

    async def remaining_attempts(self, key: str, max_attempts: int) -> int:
        return max(0, max_attempts - await self.current(key))

    async def retry_after(self, key: str) -> int:
        """Seconds until the window for ``key`` resets; 0 when there is none."""

        try:
            ttl = await self.store.ttl(CacheKeys.rate_limit(key))
        except StoreUnavailableError as exc:
            record_store_error("rate_limit")
            logger.warning("Rate limit ttl read failed: %s", exc)
            return 0
        return max(ttl, 0)

    async def clear(self, key: str) -> None:
        try:
            await self.store.delete(CacheKeys.rate_limit(key))
        except StoreUnavailableError as exc:
            record_store_error("rate_limit")
            logger.warning("Rate limit reset failed: %s", exc)


__all__ = ["FailMode", "RateLimitDecision", "RateLimiter"]
