"""Async Redis connection for the shared response cache.

Only opened when ``CACHE_BACKEND=redis``; the in-memory backend never
touches the network.
"""

from typing import AsyncGenerator, Optional

import redis.asyncio as aioredis

from library_insights.core.config import settings


def create_redis(url: Optional[str] = None) -> aioredis.Redis:
    return aioredis.from_url(url or settings.redis_url, decode_responses=True)


async def get_redis() -> AsyncGenerator[Optional[aioredis.Redis], None]:
    """FastAPI dependency: yield a Redis client (or ``None``), close on teardown."""
    if settings.cache_backend != "redis":
        yield None
        return
    client = create_redis()
    try:
        yield client
    finally:
        await client.aclose()
