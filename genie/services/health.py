"""Store health probes used by ``GET /api/health``."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from genie.core.cache import Cache
from genie.core.keys import CacheKeys
from genie.core.rate_limit import RateLimiter
from genie.core.store import StoreUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    ok: bool
    latency_ms: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class FeatureReport:
    ok: bool
    results: Dict[str, Dict[str, bool]] = field(default_factory=dict)
    error: Optional[str] = None


async def check_store_connection(cache: Cache) -> ProbeResult:
    """Round-trip a throwaway key through set/get/delete."""

    start = time.perf_counter()
    key = f"{CacheKeys.HEALTH}test"
    try:
        await cache.store.set(key, "health-check", ex=60)
        await cache.store.get(key)
        await cache.store.delete(key)
    except StoreUnavailableError as exc:
        return ProbeResult(ok=False, latency_ms=_elapsed_ms(start), error=str(exc))
    return ProbeResult(ok=True, latency_ms=_elapsed_ms(start))


async def check_features(cache: Cache, limiter: RateLimiter) -> FeatureReport:
    """Exercise caching and counting the way the app uses them."""

    results = {"caching": {"ok": True}, "rateLimiting": {"ok": True}}
    try:
        cache_key = f"{CacheKeys.HEALTH}feature-test"
        await cache.store.set(cache_key, '{"test": true}', ex=60)
        cached = await cache.store.get(cache_key)
        await cache.store.delete(cache_key)
        if not cached:
            results["caching"]["ok"] = False

        rate_key = "health:feature-test"
        await limiter.clear(rate_key)
        # Raise on store errors here instead of answering open/closed.
        await limiter.store.incr(CacheKeys.rate_limit(rate_key))
        count = await limiter.current(rate_key)
        await limiter.clear(rate_key)
        if count != 1:
            results["rateLimiting"]["ok"] = False
    except StoreUnavailableError as exc:
        logger.error("Store feature test failed: %s", exc)
        return FeatureReport(ok=False, results=results, error=str(exc))
    return FeatureReport(ok=True, results=results)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


__all__ = ["FeatureReport", "ProbeResult", "check_features", "check_store_connection"]
