"""Response cache behaviour over a Redis double, and without Redis at all."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from quizecon.cache import ResponseCache

pytestmark = pytest.mark.asyncio


class BrokenRedis:
    async def get(self, key: str) -> str | None:
        raise RedisConnectionError("down")

    async def setex(self, key: str, ttl: int, value: str) -> None:
        raise RedisConnectionError("down")

    async def scan_iter(self, match: str = "*", count: int = 10):
        raise RedisConnectionError("down")
        yield  # pragma: no cover


async def test_set_then_get_round_trips_json(memory_redis):
    cache = ResponseCache(memory_redis, prefix="qe", default_ttl=15)
    key = cache.key("ranked_leaderboard", 50)
    assert key == "qe:ranked_leaderboard:50"
    await cache.set(key, [{"rank": 1, "user_id": "a"}])
    assert await cache.get(key) == [{"rank": 1, "user_id": "a"}]


async def test_default_and_explicit_ttl(memory_redis):
    cache = ResponseCache(memory_redis, prefix="qe", default_ttl=15)
    await cache.set("qe:a", 1)
    await cache.set("qe:b", 2, ttl=120)
    assert memory_redis.ttls == {"qe:a": 15, "qe:b": 120}


async def test_invalidate_removes_only_matching_prefix(memory_redis):
    cache = ResponseCache(memory_redis, prefix="qe")
    await cache.set(cache.key("ranked_leaderboard", 10), [])
    await cache.set(cache.key("ranked_leaderboard", 50), [])
    await cache.set(cache.key("other", 1), {})
    removed = await cache.invalidate(cache.key("ranked_leaderboard"))
    assert removed == 2
    assert list(memory_redis.store) == ["qe:other:1"]


async def test_clear_drops_namespace(memory_redis):
    memory_redis.store["foreign:key"] = "1"
    cache = ResponseCache(memory_redis, prefix="qe")
    await cache.set(cache.key("x"), 1)
    assert await cache.clear() == 1
    assert list(memory_redis.store) == ["foreign:key"]


async def test_without_redis_everything_misses():
    cache = ResponseCache(None)
    await cache.set(cache.key("a"), 1)
    assert await cache.get(cache.key("a")) is None
    assert await cache.invalidate("cache:") == 0


async def test_redis_errors_degrade_to_miss():
    cache = ResponseCache(BrokenRedis(), prefix="qe")
    await cache.set("qe:a", 1)
    assert await cache.get("qe:a") is None
    assert await cache.invalidate("qe:") == 0
