import pytest

from genie.core.cache import Cache
from genie.core.rate_limit import RateLimiter
from genie.services.health import check_features, check_store_connection


@pytest.mark.asyncio
async def test_probes_pass_and_leave_no_keys(store) -> None:
    cache = Cache(store)

    connection = await check_store_connection(cache)
    features = await check_features(cache, RateLimiter(store))

    assert connection.ok
    assert "error" not in connection.to_dict()
    assert features.ok
    assert features.results["rateLimiting"] == {"ok": True}
    assert await store.keys("health:*") == []
    assert await store.keys("rate-limit:*") == []


@pytest.mark.asyncio
async def test_probes_fail_on_broken_store(broken_store) -> None:
    cache = Cache(broken_store)

    connection = await check_store_connection(cache)
    features = await check_features(cache, RateLimiter(broken_store))

    assert not connection.ok
    assert connection.error
    assert not features.ok
