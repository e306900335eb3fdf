"""Shared helpers for Redis client creation and logging."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedisTarget:
    scheme: str
    host: str
    port: int
    db: int
    password: Optional[str]

    @property
    def masked_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}/{self.db}"


def parse_redis_target(redis_url: str, *, component: str) -> RedisTarget:
    """Parse ``redis://`` / ``rediss://`` URLs and log the target without credentials."""

    parsed = urlparse(redis_url)
    scheme = parsed.scheme or "redis"
    if scheme not in {"redis", "rediss", "unix"}:
        raise ValueError(f"Unsupported Redis URL scheme: {scheme!r}")
    host = parsed.hostname or "localhost"
    port = parsed.port or 6379
    try:
        db = int(parsed.path.strip("/") or "0") if parsed.path else 0
    except ValueError:
        db = 0
    target = RedisTarget(scheme=scheme, host=host, port=port, db=db, password=parsed.password)
    logger.info("Redis %s target: %s", component, target.masked_url)
    return target


def create_redis_client(redis_url: str, *, component: str, **kwargs):
    from redis.asyncio import Redis

    parse_redis_target(redis_url, component=component)
    kwargs.setdefault("decode_responses", True)
    kwargs.setdefault("socket_timeout", 5.0)
    kwargs.setdefault("socket_connect_timeout", 5.0)
    return Redis.from_url(redis_url, **kwargs)


__all__ = ["RedisTarget", "parse_redis_target", "create_redis_client"]
