"""Redis-backed JSON cache with key and prefix invalidation."""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis

from bookhive.domain.repositories import ICacheService

logger = logging.getLogger(__name__)


class RedisCacheService(ICacheService):
    """Stores JSON values under ``<namespace><key>``."""

    def __init__(self, client: aioredis.Redis, namespace: str = "", default_ttl: int = 300):
        self.client = client
        self.namespace = namespace
        self.default_ttl = default_ttl

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.client.get(self.namespace + key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache entry %s", key)
            await self.client.delete(self.namespace + key)
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        await self.client.set(
            self.namespace + key,
            json.dumps(value, default=str),
            ex=ttl_seconds or self.default_ttl,
        )

    async def invalidate(self, key: str) -> None:
        await self.client.delete(self.namespace + key)
        logger.debug("Cache key invalidated: %s", key)

    async def invalidate_prefix(self, prefix: str) -> None:
        batch: list[str] = []
        async for key in self.client.scan_iter(match=f"{self.namespace}{prefix}*", count=500):
            batch.append(key)
            if len(batch) >= 500:
                await self.client.delete(*batch)
                batch.clear()
        if batch:
            await self.client.delete(*batch)
        logger.debug("Cache prefix invalidated: %s", prefix)
