"""Dependency injection container."""

from functools import lru_cache
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Depends

from library_insights.core.config import settings
from library_insights.core.redis_client import get_redis
from library_insights.domain.repositories import ILibraryClient, ILLMService, IResponseCache
from library_insights.domain.services import IAISearchService, ICatalogService, ILibraryLocator
from library_insights.infrastructure.cache.memory import InMemoryResponseCache
from library_insights.infrastructure.cache.redis_cache import RedisResponseCache
from library_insights.infrastructure.library.client import LibraryProxyClient
from library_insights.infrastructure.llm.services import (
    MockLLMService,
    OpenAILLMService,
    ProxyLLMService,
)
from library_insights.services.ai_search import AISearchService
from library_insights.services.catalog_service import CatalogService
from library_insights.services.library_locator import LibraryLocator


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def _proxy_client() -> LibraryProxyClient:
    return LibraryProxyClient(
        base_url=settings.library_proxy_base_url,
        shared_secret=settings.library_proxy_shared_secret,
        timeout=settings.library_timeout_seconds,
    )


def get_library_client() -> ILibraryClient:
    """Return the library open-data client."""
    return _proxy_client()


def get_llm_service() -> ILLMService:
    """Return the configured LLM provider."""
    if settings.llm_provider == "mock":
        return MockLLMService()
    elif settings.llm_provider == "openai":
        return OpenAILLMService(api_key=settings.llm_api_key, model=settings.llm_model)
    elif settings.llm_provider == "proxy":
        return ProxyLLMService(proxy=_proxy_client(), timeout=settings.ai_timeout_seconds)
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")


@lru_cache()
def get_memory_cache() -> InMemoryResponseCache:
    """Process-wide in-memory cache (``CACHE_BACKEND=memory``)."""
    return InMemoryResponseCache(max_entries=settings.memory_cache_max_entries)


async def get_response_cache(
    redis_client: Optional[aioredis.Redis] = Depends(get_redis),
) -> IResponseCache:
    """Return the configured response cache backend."""
    if settings.cache_backend == "redis" and redis_client is not None:
        return RedisResponseCache(redis_client)
    elif settings.cache_backend == "memory":
        return get_memory_cache()
    raise ValueError(f"Unknown cache backend: {settings.cache_backend}")


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_ai_search_service(
    library: ILibraryClient = Depends(get_library_client),
    llm: ILLMService = Depends(get_llm_service),
    cache: IResponseCache = Depends(get_response_cache),
) -> IAISearchService:
    return AISearchService(
        library_client=library,
        llm_service=llm,
        cache=cache,
        cache_ttl=settings.ai_search_cache_ttl,
        ai_timeout=settings.ai_timeout_seconds,
        library_timeout=settings.library_timeout_seconds,
        usage_timeout=settings.usage_analysis_timeout_seconds,
        availability_timeout=settings.availability_timeout_seconds,
        include_seeds_in_fallback=settings.include_seeds_in_fallback,
    )


async def get_catalog_service(
    library: ILibraryClient = Depends(get_library_client),
    llm: ILLMService = Depends(get_llm_service),
    cache: IResponseCache = Depends(get_response_cache),
) -> ICatalogService:
    return CatalogService(
        library_client=library,
        llm_service=llm,
        cache=cache,
        popular_books_ttl=settings.popular_books_cache_ttl,
        hot_trend_ttl=settings.hot_trend_cache_ttl,
        insight_ttl=settings.insight_cache_ttl,
        new_arrivals_ttl=settings.new_arrivals_cache_ttl,
        monthly_recommend_ttl=settings.monthly_recommend_cache_ttl,
    )


async def get_library_locator(
    library: ILibraryClient = Depends(get_library_client),
) -> ILibraryLocator:
    return LibraryLocator(library_client=library)
