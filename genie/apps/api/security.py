"""Request identity helpers: client IP, bearer sessions and slowapi limits."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter

from genie.core.settings import get_settings
from genie.domain.users import SessionRecord

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP from request, supporting X-Forwarded-For when enabled.

    TRUST_PROXY_HEADERS should only be on behind a proxy that overwrites the
    header; otherwise clients can pick their own rate-limit bucket.
    """
    settings = get_settings()

    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    return request.client.host if request and request.client else "127.0.0.1"


def _build_limiter() -> Limiter:
    """
    Create the per-IP request limiter for public endpoints.

    Storage backend selection:
    - RATE_LIMIT_REDIS_URL (defaults to REDIS_URL) set: Redis, shared by all workers
    - otherwise: in-memory, per worker
    """
    settings = get_settings()
    storage_uri = settings.rate_limit_redis_url or None

    if settings.rate_limit_enabled and storage_uri:
        logger.info(
            "Request limiter using Redis storage",
            extra={"storage_uri": storage_uri.split("@")[-1]},
        )
    elif settings.rate_limit_enabled:
        logger.warning(
            "Request limiter using in-memory storage (per worker). "
            "Set RATE_LIMIT_REDIS_URL to share limits across workers."
        )

    return Limiter(
        key_func=get_client_ip,
        default_limits=[],
        enabled=settings.rate_limit_enabled,
        storage_uri=storage_uri if settings.rate_limit_enabled else None,
    )


limiter = _build_limiter()


async def optional_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[SessionRecord]:
    if credentials is None or not credentials.credentials:
        return None
    return await request.app.state.auth_service.current_session(credentials.credentials)


async def require_session(
    session: Optional[SessionRecord] = Depends(optional_session),
) -> SessionRecord:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return session


__all__ = ["get_client_ip", "limiter", "optional_session", "require_session"]
