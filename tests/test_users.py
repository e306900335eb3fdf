import pytest

from genie.core.keys import CacheKeys
from genie.domain.users import UserRecord
from genie.services.users import UserCache, user_cache_key


class CountingDirectory:
    def __init__(self, directory) -> None:
        self._directory = directory
        self.reads = 0

    async def get_user(self, user_id):
        self.reads += 1
        return await self._directory.get_user(user_id)

    async def get_user_by_email(self, email):
        self.reads += 1
        return await self._directory.get_user_by_email(email)

    async def update_user(self, user_id, **changes):
        return await self._directory.update_user(user_id, **changes)


@pytest.fixture
def alice(directory) -> UserRecord:
    record = UserRecord(id="alice", email="alice@example.com", hashed_password=None, name="Alice")
    directory.users[record.id] = record
    return record


def test_cache_key_requires_id_or_email() -> None:
    assert user_cache_key(user_id="1") == "user:id:1"
    assert user_cache_key(email="A@B.C") == "user:email:a@b.c"
    with pytest.raises(ValueError):
        user_cache_key()


@pytest.mark.asyncio
async def test_lookup_by_id_primes_email_key(cache, directory, alice) -> None:
    counting = CountingDirectory(directory)
    users = UserCache(cache, counting)

    assert (await users.get_user(user_id="alice")).name == "Alice"
    assert (await users.get_user(email="ALICE@example.com")).id == "alice"
    assert counting.reads == 1


@pytest.mark.asyncio
async def test_stale_entry_is_reloaded(cache, directory, alice, clock) -> None:
    counting = CountingDirectory(directory)
    users = UserCache(cache, counting, ttl=60)

    await users.get_user(user_id="alice")
    clock.advance(61)
    await users.get_user(user_id="alice")

    assert counting.reads == 2


@pytest.mark.asyncio
async def test_missing_user_is_not_cached(user_cache: UserCache, directory, cache) -> None:
    assert await user_cache.get_user(email="new@example.com") is None
    assert await cache.get_entry(CacheKeys.user_by_email("new@example.com")) is None

    directory.users["n"] = UserRecord(id="n", email="new@example.com", hashed_password=None)
    assert (await user_cache.get_user(email="new@example.com")).id == "n"


@pytest.mark.asyncio
async def test_update_user_invalidates_all_copies(user_cache: UserCache, cache, alice) -> None:
    await user_cache.get_user(user_id="alice")
    await user_cache.get_user_data("alice")

    updated = await user_cache.update_user("alice", email="alice@new.example.com", credits=42)

    assert updated.credits == 42
    for key in (
        CacheKeys.user_by_id("alice"),
        CacheKeys.user("alice"),
        CacheKeys.user_by_email("alice@example.com"),
        CacheKeys.user_by_email("alice@new.example.com"),
    ):
        assert await cache.get_entry(key) is None
    assert (await user_cache.get_user(user_id="alice")).email == "alice@new.example.com"


@pytest.mark.asyncio
async def test_get_user_data_is_tagged(user_cache: UserCache, cache, alice) -> None:
    data = await user_cache.get_user_data("alice")
    assert data["email"] == "alice@example.com"

    assert await cache.revalidate_tag("user") == 1
    assert await cache.get_entry(CacheKeys.user("alice")) is None


@pytest.mark.asyncio
async def test_broken_store_reads_directory(broken_store, directory, alice) -> None:
    from genie.core.cache import Cache

    users = UserCache(Cache(broken_store), directory)
    assert (await users.get_user(user_id="alice")).id == "alice"
