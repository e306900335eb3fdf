"""Stale-while-revalidate cache over a key-value store.

This module provides:
- the ``CacheEntry`` envelope (data + write timestamp + tags) stored as JSON
- ``Cache.cache()``: fresh hit / stale hit with background refresh / cold fetch
- tag and prefix invalidation
- cache warming

Store failures never fail a read: the wrapper logs them and calls the data
producer directly. Cache contents are disposable; the database stays the
source of truth.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, Optional, Sequence, TypeVar

from genie.core.keys import TTL
from genie.core.metrics import record_cache_event, record_store_error
from genie.core.refresh import BackgroundRefresher
from genie.core.store import Clock, KeyValueStore, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Cached value plus the epoch-ms time it was written and its tags."""

    data: T
    timestamp: int
    tags: tuple[str, ...] = field(default_factory=tuple)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.timestamp

    def is_fresh(self, now_ms: int, ttl_seconds: float) -> bool:
        return self.age_ms(now_ms) < ttl_seconds * 1000

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def dumps(self) -> str:
        return json.dumps(
            {"data": self.data, "timestamp": self.timestamp, "tags": list(self.tags)},
            default=str,
        )

    @classmethod
    def loads(cls, raw: Optional[str]) -> Optional["CacheEntry[Any]"]:
        """Parse a stored entry; anything else under the key (counters, raw strings) yields None."""

        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, dict) or "data" not in payload or "timestamp" not in payload:
            return None
        try:
            timestamp = int(payload["timestamp"])
        except (TypeError, ValueError):
            return None
        tags = payload.get("tags") or []
        if not isinstance(tags, list):
            tags = []
        return cls(data=payload["data"], timestamp=timestamp, tags=tuple(str(t) for t in tags))


class Cache:
    """Generic cache wrapper with stale-while-revalidate support."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        refresher: Optional[BackgroundRefresher] = None,
        clock: Optional[Clock] = None,
        default_ttl: int = TTL.MEDIUM,
        stale_seconds: int = TTL.STALE,
    ) -> None:
        self.store = store
        self.refresher = refresher or BackgroundRefresher()
        self._clock: Clock = clock or time.time
        self.default_ttl = default_ttl
        self.stale_seconds = stale_seconds

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def backend(self) -> str:
        return self.store.backend

    # Low-level entry access ----------------------------------------------

    async def get_entry(self, key: str) -> Optional[CacheEntry[Any]]:
        """Read an entry; raises StoreUnavailableError if the store is down."""

        return CacheEntry.loads(await self.store.get(key))

    async def set(
        self,
        key: str,
        value: Any,
        *,
        ttl: Optional[int] = None,
        tags: Sequence[str] = (),
    ) -> bool:
        """Write an entry stamped with the current time. Returns False if the store failed."""

        ttl = self.default_ttl if ttl is None else ttl
        entry = CacheEntry(data=value, timestamp=self.now_ms(), tags=tuple(tags))
        try:
            await self.store.set(key, entry.dumps(), ex=int(ttl + self.stale_seconds))
        except StoreUnavailableError as exc:
            record_store_error("set")
            logger.warning("Cache set failed for key %s: %s", key, exc)
            return False
        return True

    async def delete(self, *keys: str) -> int:
        try:
            return await self.store.delete(*keys)
        except StoreUnavailableError as exc:
            record_store_error("delete")
            logger.warning("Cache delete failed for keys %s: %s", keys, exc)
            return 0

    # Read-through ----------------------------------------------------------

    async def cache(
        self,
        key: str,
        get_data: Producer[T],
        *,
        ttl: Optional[int] = None,
        tags: Sequence[str] = (),
        prefix: str = "",
        stale_while_revalidate: bool = True,
    ) -> T:
        """Return cached data for ``prefix + key``, producing it on a miss.

        - fresh entry: returned as is, ``get_data`` is not called
        - stale entry with SWR: returned as is, a background refresh is scheduled
        - stale entry without SWR, or no entry: ``get_data`` is awaited and stored
        - store read failure: ``get_data`` is awaited and nothing is stored
        """

        ttl = self.default_ttl if ttl is None else ttl
        cache_key = f"{prefix}{key}"

        try:
            entry = await self.get_entry(cache_key)
        except StoreUnavailableError as exc:
            record_store_error("get")
            record_cache_event(self.backend, "error")
            logger.warning("Cache get failed for key %s, fetching directly: %s", cache_key, exc)
            return await get_data()

        if entry is not None:
            if entry.is_fresh(self.now_ms(), ttl):
                record_cache_event(self.backend, "hit")
                return entry.data
            if stale_while_revalidate:
                record_cache_event(self.backend, "stale")
                self._revalidate(cache_key, get_data, ttl=ttl, tags=tags)
                return entry.data

        record_cache_event(self.backend, "miss")
        fresh = await get_data()
        await self.set(cache_key, fresh, ttl=ttl, tags=tags)
        return fresh

    def _revalidate(
        self,
        cache_key: str,
        get_data: Producer[Any],
        *,
        ttl: int,
        tags: Sequence[str],
    ) -> None:
        async def _job() -> None:
            fresh = await get_data()
            await self.set(cache_key, fresh, ttl=ttl, tags=tags)

        self.refresher.schedule(cache_key, _job)

    # Invalidation ----------------------------------------------------------

    async def revalidate_tag(self, tag: str) -> int:
        """Delete every entry tagged with ``tag``.

        This walks the whole keyspace; fine for this application's key counts.
        """

        try:
            keys = await self.store.keys("*")
        except StoreUnavailableError as exc:
            record_store_error("keys")
            logger.error("Tag revalidation failed for %s: %s", tag, exc)
            return 0

        async def _drop_if_tagged(key: str) -> int:
            try:
                entry = await self.get_entry(key)
                if entry is not None and entry.has_tag(tag):
                    return await self.store.delete(key)
            except StoreUnavailableError as exc:
                record_store_error("revalidate_tag")
                logger.warning("Tag revalidation skipped key %s: %s", key, exc)
            return 0

        removed = sum(await asyncio.gather(*(_drop_if_tagged(key) for key in keys)))
        if removed:
            logger.info("Revalidated tag %s: %d entries removed", tag, removed)
        return removed

    async def clear_prefix(self, prefix: str) -> int:
        """Delete all keys starting with ``prefix``."""

        try:
            keys = await self.store.keys(f"{prefix}*")
            if not keys:
                return 0
            return await self.store.delete(*keys)
        except StoreUnavailableError as exc:
            record_store_error("clear_prefix")
            logger.error("Cache clear failed for prefix %s: %s", prefix, exc)
            return 0

    # Warming ---------------------------------------------------------------

    async def warm(
        self,
        keys: Iterable[str],
        get_data: Callable[[str], Awaitable[Any]],
        *,
        ttl: Optional[int] = None,
        tags: Sequence[str] = (),
        prefix: str = "",
    ) -> int:
        """Populate ``keys`` concurrently. Returns how many were warmed."""

        keys = list(keys)

        async def _warm_one(key: str) -> Any:
            return await self.cache(key, lambda: get_data(key), ttl=ttl, tags=tags, prefix=prefix)

        results = await asyncio.gather(*(_warm_one(key) for key in keys), return_exceptions=True)
        warmed = 0
        for key, res in zip(keys, results):
            if isinstance(res, Exception):
                logger.error("Cache warming failed for key %s", key, exc_info=res)
            else:
                warmed += 1
        return warmed


__all__ = ["Cache", "CacheEntry", "Producer"]
