import asyncio

import pytest

from genie.core.refresh import BackgroundRefresher, RefreshLimiter


@pytest.mark.asyncio
async def test_one_refresh_per_key() -> None:
    refresher = BackgroundRefresher()
    gate = asyncio.Event()
    runs = []

    async def job() -> None:
        runs.append(1)
        await gate.wait()

    first = refresher.schedule("k", job)
    second = refresher.schedule("k", job)
    other = refresher.schedule("other", job)

    assert first is not None
    assert second is None
    assert other is not None
    assert refresher.inflight == 2

    gate.set()
    await refresher.drain(timeout=1)
    assert len(runs) == 2
    assert refresher.inflight == 0
    assert not refresher.is_refreshing("k")


@pytest.mark.asyncio
async def test_key_can_refresh_again_after_completion() -> None:
    refresher = BackgroundRefresher()
    runs = []

    async def job() -> None:
        runs.append(1)

    refresher.schedule("k", job)
    await refresher.drain(timeout=1)
    refresher.schedule("k", job)
    await refresher.drain(timeout=1)

    assert len(runs) == 2


@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    refresher = BackgroundRefresher(max_inflight=2)
    running = 0
    peak = 0

    async def job() -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1

    for i in range(6):
        refresher.schedule(f"k{i}", job)
    await refresher.drain(timeout=2)

    assert peak == 2


@pytest.mark.asyncio
async def test_shutdown_cancels_stuck_refreshes() -> None:
    refresher = BackgroundRefresher()

    async def stuck() -> None:
        await asyncio.Event().wait()

    task = refresher.schedule("k", stuck)
    await asyncio.sleep(0)
    await refresher.shutdown(timeout=0.05)

    assert task.cancelled()
    assert refresher.inflight == 0


@pytest.mark.asyncio
async def test_refresh_limiter_reports_saturation() -> None:
    limiter = RefreshLimiter(max_inflight=1)
    assert not limiter.locked()
    async with limiter:
        assert limiter.locked()
    assert not limiter.locked()
