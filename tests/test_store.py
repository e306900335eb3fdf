import pytest

from genie.core.store import InMemoryStore, StoreUnavailableError, build_store


@pytest.mark.asyncio
async def test_get_set_delete(store) -> None:
    assert await store.get("user:1") is None

    await store.set("user:1", "alice")
    assert await store.get("user:1") == "alice"

    assert await store.delete("user:1", "user:missing") == 1
    assert await store.get("user:1") is None
    assert await store.delete() == 0


@pytest.mark.asyncio
async def test_incr_expire_and_ttl(store) -> None:
    assert await store.ttl("counter") == -2
    assert await store.expire("counter", 30) is False

    assert await store.incr("counter") == 1
    assert await store.incr("counter") == 2
    assert await store.ttl("counter") == -1

    assert await store.expire("counter", 30) is True
    assert 0 < await store.ttl("counter") <= 30


@pytest.mark.asyncio
async def test_keys_pattern(store) -> None:
    await store.set("session:a", "1")
    await store.set("session:b", "2")
    await store.set("user:a", "3")

    assert sorted(await store.keys("session:*")) == ["session:a", "session:b"]
    assert len(await store.keys()) == 3


@pytest.mark.asyncio
async def test_memory_store_expiry_follows_clock(memory_store, clock) -> None:
    await memory_store.set("k", "v", ex=10)
    clock.advance(9)
    assert await memory_store.get("k") == "v"
    assert await memory_store.ttl("k") == 1

    clock.advance(1)
    assert await memory_store.get("k") is None
    assert await memory_store.ttl("k") == -2
    assert await memory_store.keys() == []


@pytest.mark.asyncio
async def test_memory_store_incr_on_text_value_fails(memory_store) -> None:
    await memory_store.set("k", "not-a-number")
    with pytest.raises(StoreUnavailableError):
        await memory_store.incr("k")


@pytest.mark.asyncio
async def test_redis_errors_become_store_unavailable(broken_store) -> None:
    with pytest.raises(StoreUnavailableError) as excinfo:
        await broken_store.get("k")
    assert excinfo.value.operation == "get"

    with pytest.raises(StoreUnavailableError):
        await broken_store.incr("k")
    with pytest.raises(StoreUnavailableError):
        await broken_store.ping()


def test_build_store_without_url_is_in_memory() -> None:
    store = build_store(redis_url="")
    assert isinstance(store, InMemoryStore)
    assert store.backend == "memory"


def test_build_store_with_url_is_redis() -> None:
    store = build_store(redis_url="redis://localhost:6379/0")
    assert store.backend == "redis"
