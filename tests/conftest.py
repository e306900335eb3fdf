from typing import Optional

import pytest

from genie.core.cache import Cache
from genie.core.rate_limit import FailMode, RateLimiter
from genie.core.refresh import BackgroundRefresher
from genie.core.store import InMemoryStore, KeyValueStore, RedisStore
from genie.services.auth_cache import AuthCache
from genie.services.directory import InMemoryUserDirectory
from genie.services.users import UserCache

try:
    from fakeredis import FakeServer
    from fakeredis import aioredis as fakeredis_aioredis
except ImportError:  # pragma: no cover - dependency guarded in tests only
    FakeServer = None
    fakeredis_aioredis = None


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_redis_store(*, connected: bool = True) -> RedisStore:
    if fakeredis_aioredis is None:
        pytest.skip("fakeredis is required for Redis store tests")
    server = FakeServer()
    server.connected = connected
    return RedisStore(fakeredis_aioredis.FakeRedis(server=server, decode_responses=True))


def make_store(kind: str, clock: Optional[FakeClock] = None) -> KeyValueStore:
    if kind == "memory":
        return InMemoryStore(clock=clock)
    return make_redis_store()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def broken_store() -> RedisStore:
    return make_redis_store(connected=False)


@pytest.fixture
def cache(memory_store: InMemoryStore, clock: FakeClock) -> Cache:
    return Cache(memory_store, refresher=BackgroundRefresher(max_inflight=4), clock=clock)


@pytest.fixture
def limiter(memory_store: InMemoryStore) -> RateLimiter:
    return RateLimiter(memory_store, fail_mode=FailMode.CLOSED)


@pytest.fixture
def directory(clock: FakeClock) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(clock=clock)


@pytest.fixture
def auth_cache(cache: Cache, limiter: RateLimiter, directory: InMemoryUserDirectory) -> AuthCache:
    return AuthCache(cache, limiter, directory)


@pytest.fixture
def user_cache(cache: Cache, directory: InMemoryUserDirectory) -> UserCache:
    return UserCache(cache, directory)


@pytest.fixture(params=["memory", "redis"])
def store(request, clock: FakeClock) -> KeyValueStore:
    return make_store(request.param, clock)


@pytest.fixture
def backend_cache(store: KeyValueStore, clock: FakeClock) -> Cache:
    """Cache over each store backend in turn."""
    return Cache(store, refresher=BackgroundRefresher(max_inflight=4), clock=clock)
