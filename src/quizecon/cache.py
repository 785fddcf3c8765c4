"""Redis-backed JSON response cache.

One instance is built in the app lifespan and stored on ``app.state``; nothing
here is module-level state. Without Redis every call degrades to a miss.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger()


class ResponseCache:
    """Namespaced get/set/invalidate over Redis string keys with a TTL."""

    def __init__(self, redis: Redis | None, prefix: str = "cache", default_ttl: int = 15) -> None:
        self._redis = redis
        self._prefix = prefix
        self.default_ttl = default_ttl

    def key(self, *parts: object) -> str:
        return ":".join([self._prefix, *(str(p) for p in parts)])

    async def get(self, key: str) -> Any | None:  # noqa: ANN401
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            logger.warning("cache_get_failed", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:  # noqa: ANN401
        if self._redis is None:
            return
        try:
            await self._redis.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
        except RedisError as exc:
            logger.warning("cache_set_failed", key=key, error=str(exc))

    async def invalidate(self, prefix: str) -> int:
        """Delete every key under ``prefix``. Returns how many were removed."""
        if self._redis is None:
            return 0
        removed = 0
        try:
            async for key in self._redis.scan_iter(match=f"{prefix}*", count=100):
                removed += await self._redis.delete(key)
        except RedisError as exc:
            logger.warning("cache_invalidate_failed", prefix=prefix, error=str(exc))
        return removed

    async def clear(self) -> int:
        """Drop everything in this cache's namespace (used on shutdown and in tests)."""
        return await self.invalidate(f"{self._prefix}:")
