"""Runtime wiring of the store, caches and auth services onto the app."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from genie.core.cache import Cache
from genie.core.rate_limit import FailMode, RateLimiter
from genie.core.refresh import BackgroundRefresher
from genie.core.settings import Settings
from genie.core.store import Clock, KeyValueStore, build_store
from genie.services.auth import AuthService
from genie.services.auth_cache import AuthCache
from genie.services.directory import InMemoryUserDirectory, UserDirectory
from genie.services.mailer import LoggingMailer, Mailer
from genie.services.users import UserCache

logger = logging.getLogger(__name__)


@dataclass
class CacheIntegration:
    """Holds runtime cache objects for cleanup."""

    store: KeyValueStore
    refresher: BackgroundRefresher
    cache: Cache
    limiter: RateLimiter
    auth_cache: AuthCache
    user_cache: UserCache
    auth_service: AuthService
    directory: UserDirectory

    async def shutdown(self) -> None:
        """Finish pending refreshes, then close the store connection."""

        try:
            await self.refresher.shutdown(timeout=5.0)
        except Exception:  # pragma: no cover - cancellation edge cases
            logger.exception("Failed to stop cache refreshes cleanly")

        try:
            await self.store.close()
        except Exception:  # pragma: no cover - driver cleanup issues
            logger.exception("Failed to close cache store cleanly")


def build_cache_integration(
    settings: Settings,
    *,
    directory: Optional[UserDirectory] = None,
    mailer: Optional[Mailer] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Clock] = None,
) -> CacheIntegration:
    if store is None:
        store = build_store(redis_url=settings.redis_url, clock=clock)
    if directory is None:
        if settings.environment == "production":
            raise RuntimeError("A user directory must be provided in production")
        logger.warning("Using in-memory user directory; data is lost on restart")
        directory = InMemoryUserDirectory(clock=clock)

    refresher = BackgroundRefresher(max_inflight=settings.cache_refresh_max_inflight)
    cache = Cache(
        store,
        refresher=refresher,
        clock=clock,
        default_ttl=settings.cache_default_ttl,
        stale_seconds=settings.cache_stale_seconds,
    )
    fail_mode = FailMode.parse(settings.rate_limit_fail_mode, FailMode.CLOSED)
    limiter = RateLimiter(store, fail_mode=fail_mode, enabled=settings.rate_limit_enabled)
    auth_cache = AuthCache(cache, limiter, directory, ttl=settings.auth_cache_ttl)
    user_cache = UserCache(cache, directory)
    auth_service = AuthService(
        auth_cache,
        user_cache,
        directory,
        mailer or LoggingMailer(),
        session_ttl_seconds=settings.session_ttl_seconds,
        # Auth paths never fail open, whatever the global default says.
        fail_mode=FailMode.CLOSED,
    )
    logger.info(
        "Cache layer ready",
        extra={"backend": store.backend, "rate_limit_fail_mode": fail_mode.value},
    )
    return CacheIntegration(
        store=store,
        refresher=refresher,
        cache=cache,
        limiter=limiter,
        auth_cache=auth_cache,
        user_cache=user_cache,
        auth_service=auth_service,
        directory=directory,
    )


def attach_cache_state(app: FastAPI, integration: CacheIntegration) -> None:
    app.state.store = integration.store
    app.state.cache = integration.cache
    app.state.rate_limiter = integration.limiter
    app.state.auth_cache = integration.auth_cache
    app.state.user_cache = integration.user_cache
    app.state.auth_service = integration.auth_service
    app.state.directory = integration.directory


__all__ = ["CacheIntegration", "attach_cache_state", "build_cache_integration"]
