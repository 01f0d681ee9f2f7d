"""Async Redis client shared across the application.

Used for the response/fetch cache; keys are namespaced by
``settings.cache_namespace`` inside :class:`RedisCacheService`.
"""

import redis.asyncio as aioredis


def create_redis(redis_url: str) -> aioredis.Redis:
    """Return a Redis client; it connects lazily on first command."""
    return aioredis.from_url(redis_url, decode_responses=True)
