"""Key-value store backends for the cache and rate-limit layer."""

from __future__ import annotations

import abc
import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from genie.core.redis_factory import create_redis_client

Clock = Callable[[], float]


class StoreUnavailableError(RuntimeError):
    """Raised when the backing store cannot serve a command."""

    def __init__(self, operation: str, original: Optional[BaseException] = None) -> None:
        message = f"Store {operation} failed"
        if original is not None:
            message = f"{message}: {original}"
        super().__init__(message)
        self.operation = operation
        self.original = original


class KeyValueStore(abc.ABC):
    """Minimal Redis command surface used by the cache layer.

    Values are strings; callers own serialization. Every command maps to a
    single-key Redis command except ``delete`` and ``keys``.
    """

    backend: str = "abstract"

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for key or None."""

    @abc.abstractmethod
    async def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        """Store value, optionally expiring after ``ex`` seconds."""

    @abc.abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment an integer counter, creating it at 1."""

    @abc.abstractmethod
    async def expire(self, key: str, seconds: int) -> bool:
        """Set key expiry. Returns False when the key does not exist."""

    @abc.abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining seconds; -1 without expiry, -2 when missing."""

    @abc.abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""

    @abc.abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """Return keys matching a glob-style pattern."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:  # pragma: no cover - optional override
        return None


class InMemoryStore(KeyValueStore):
    """In-process store with Redis-like TTL semantics.

    Used when no Redis URL is configured. The clock is injectable so tests can
    move time forward without sleeping.
    """

    backend = "memory"

    @dataclass
    class _Entry:
        value: str
        expires_at: Optional[float]

    def __init__(self, *, clock: Optional[Clock] = None) -> None:
        super().__init__()
        self._clock: Clock = clock or time.time
        self._data: Dict[str, InMemoryStore._Entry] = {}

    def _live(self, key: str) -> Optional["InMemoryStore._Entry"]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            self._data.pop(key, None)
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry.value if entry else None

    async def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        expires_at = self._clock() + float(ex) if ex else None
        self._data[key] = InMemoryStore._Entry(str(value), expires_at)

    async def incr(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            self._data[key] = InMemoryStore._Entry("1", None)
            return 1
        try:
            count = int(entry.value) + 1
        except ValueError as exc:
            raise StoreUnavailableError("incr", exc) from exc
        entry.value = str(count)
        return count

    async def expire(self, key: str, seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = self._clock() + float(seconds)
        return True

    async def ttl(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            return -2
        if entry.expires_at is None:
            return -1
        return max(0, int(round(entry.expires_at - self._clock())))

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._data.pop(key, None)
        return removed

    async def keys(self, pattern: str = "*") -> List[str]:
        return [key for key in list(self._data) if self._live(key) and fnmatch.fnmatchcase(key, pattern)]

    async def clear(self) -> None:
        self._data.clear()


class RedisStore(KeyValueStore):
    """Redis-backed store; every driver error surfaces as StoreUnavailableError."""

    backend = "redis"

    def __init__(self, redis: aioredis.Redis) -> None:
        super().__init__()
        self._redis = redis

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisStore":
        return cls(create_redis_client(url, component="cache", **kwargs))

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    async def get(self, key: str) -> Optional[str]:
        try:
            return self._text(await self._redis.get(key))
        except RedisError as exc:
            raise StoreUnavailableError("get", exc) from exc

    async def set(self, key: str, value: str, *, ex: Optional[int] = None) -> None:
        try:
            if ex:
                await self._redis.set(key, value, ex=int(ex))
            else:
                await self._redis.set(key, value)
        except RedisError as exc:
            raise StoreUnavailableError("set", exc) from exc

    async def incr(self, key: str) -> int:
        try:
            return int(await self._redis.incr(key))
        except RedisError as exc:
            raise StoreUnavailableError("incr", exc) from exc

    async def expire(self, key: str, seconds: int) -> bool:
        try:
            return bool(await self._redis.expire(key, int(seconds)))
        except RedisError as exc:
            raise StoreUnavailableError("expire", exc) from exc

    async def ttl(self, key: str) -> int:
        try:
            return int(await self._redis.ttl(key))
        except RedisError as exc:
            raise StoreUnavailableError("ttl", exc) from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._redis.delete(*keys))
        except RedisError as exc:
            raise StoreUnavailableError("delete", exc) from exc

    async def keys(self, pattern: str = "*") -> List[str]:
        found: List[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern):
                found.append(self._text(key) or "")
        except RedisError as exc:
            raise StoreUnavailableError("keys", exc) from exc
        return found

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            raise StoreUnavailableError("ping", exc) from exc

    async def close(self) -> None:  # pragma: no cover - depends on driver internals
        try:
            await self._redis.aclose()
        except RedisError:
            self._logger.warning("Redis close failed", exc_info=True)


def build_store(*, redis_url: Optional[str], clock: Optional[Clock] = None) -> KeyValueStore:
    """Pick Redis when a URL is configured, the in-process store otherwise."""

    if redis_url:
        return RedisStore.from_url(redis_url)
    logging.getLogger(__name__).info("No REDIS_URL configured; using in-memory store")
    return InMemoryStore(clock=clock)


__all__ = [
    "build_store",
    "Clock",
    "InMemoryStore",
    "KeyValueStore",
    "RedisStore",
    "StoreUnavailableError",
]
