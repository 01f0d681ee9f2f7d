import fnmatch

import pytest

from bookhive.infrastructure.cache.redis_cache import RedisCacheService


class StubRedis:
    """The subset of ``redis.asyncio.Redis`` the cache uses."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def scan_iter(self, match=None, count=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


@pytest.fixture
def redis_stub():
    return StubRedis()


@pytest.fixture
def cache_service(redis_stub):
    return RedisCacheService(redis_stub, namespace="test:", default_ttl=60)


async def test_values_round_trip_under_namespace(cache_service, redis_stub):
    await cache_service.set_json("books.get:1", {"title": "Dune"})

    assert "test:books.get:1" in redis_stub.data
    assert redis_stub.expiry["test:books.get:1"] == 60
    assert await cache_service.get_json("books.get:1") == {"title": "Dune"}


async def test_explicit_ttl(cache_service, redis_stub):
    await cache_service.set_json("k", [1], ttl_seconds=5)

    assert redis_stub.expiry["test:k"] == 5


async def test_undecodable_entry_is_dropped(cache_service, redis_stub):
    redis_stub.data["test:k"] = "{not json"

    assert await cache_service.get_json("k") is None
    assert "test:k" not in redis_stub.data


async def test_prefix_invalidation(cache_service, redis_stub):
    for key in ("books.fetch:dune|1", "books.fetch:emma|1", "books.get:1"):
        await cache_service.set_json(key, [])
    redis_stub.data["other:books.fetch:x|1"] = "[]"

    await cache_service.invalidate_prefix("books.fetch:")

    assert sorted(redis_stub.data) == ["other:books.fetch:x|1", "test:books.get:1"]
