"""Redis-backed response cache."""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from library_insights.domain.repositories import IResponseCache

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "cache:"


class RedisResponseCache(IResponseCache):
    """Stores JSON bodies with ``SETEX``; every Redis error is treated as a miss."""

    def __init__(self, client: aioredis.Redis, prefix: str = CACHE_KEY_PREFIX):
        self.client = client
        self.prefix = prefix

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await self.client.get(f"{self.prefix}{key}")
        except RedisError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self.client.setex(
                f"{self.prefix}{key}", ttl_seconds, json.dumps(value, ensure_ascii=False)
            )
        except (RedisError, TypeError) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
