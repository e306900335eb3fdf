"""Background refresh tasks for stale-while-revalidate.

A stale read schedules its refresh here and returns immediately. The
refresher owns the tasks so they are not garbage collected mid-flight, keeps
at most one refresh per key, bounds concurrency with a semaphore, and reports
failures to the log and to Prometheus. Nothing is ever raised back to the
request that triggered the refresh.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from genie.core.metrics import record_revalidation

logger = logging.getLogger(__name__)

RefreshJob = Callable[[], Awaitable[None]]


class RefreshLimiter:
    """Limiter for background refresh concurrency."""

    def __init__(self, *, max_inflight: int = 10) -> None:
        self._sem = asyncio.Semaphore(max(1, int(max_inflight)))

    def locked(self) -> bool:
        """Return True when no additional refresh slots are available."""

        return self._sem.locked()

    async def __aenter__(self):
        await self._sem.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._sem.release()
        return False


class BackgroundRefresher:
    """Runs fire-and-forget refresh jobs, one per key at a time."""

    def __init__(self, *, max_inflight: int = 10) -> None:
        self._limiter = RefreshLimiter(max_inflight=max_inflight)
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def is_refreshing(self, key: str) -> bool:
        return key in self._tasks

    def schedule(self, key: str, job: RefreshJob) -> Optional[asyncio.Task]:
        """Start ``job`` in the background unless ``key`` is already refreshing."""

        if key in self._tasks:
            record_revalidation("skipped")
            return None

        async def _run() -> None:
            try:
                async with self._limiter:
                    await job()
            except asyncio.CancelledError:
                logger.info("Cache refresh cancelled", extra={"cache_key": key})
                raise
            except Exception:
                record_revalidation("error")
                logger.exception("Cache refresh failed", extra={"cache_key": key})
            else:
                record_revalidation("ok")

        task = asyncio.create_task(_run(), name=f"cache_refresh:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda _t: self._tasks.pop(key, None))
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight refreshes to finish."""

        tasks = list(self._tasks.values())
        if not tasks:
            return
        await asyncio.wait(tasks, timeout=timeout)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Give in-flight refreshes ``timeout`` seconds, then cancel the rest."""

        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.info("Waiting for %d cache refreshes to finish", len(tasks))
        _done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            logger.warning("Cancelling cache refresh: %s", task.get_name())
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["BackgroundRefresher", "RefreshJob", "RefreshLimiter"]
