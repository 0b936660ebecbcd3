"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    library_proxy_base_url: str = "http://127.0.0.1:8080"
    library_proxy_shared_secret: str = ""
    llm_provider: Literal["mock", "openai", "proxy"] = "mock"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379"
    memory_cache_max_entries: int = 1024

    # Cache lifetimes (seconds)
    ai_search_cache_ttl: int = 24 * 60 * 60
    insight_cache_ttl: int = 7 * 24 * 60 * 60
    popular_books_cache_ttl: int = 60 * 60
    hot_trend_cache_ttl: int = 6 * 60 * 60
    new_arrivals_cache_ttl: int = 6 * 60 * 60
    monthly_recommend_cache_ttl: int = 24 * 60 * 60

    # Upstream timeouts (seconds)
    ai_timeout_seconds: float = 8.0
    library_timeout_seconds: float = 2.5
    usage_analysis_timeout_seconds: float = 3.0
    availability_timeout_seconds: float = 2.0

    # Push resolved seed books as their own recommendations when nothing else turns up
    include_seeds_in_fallback: bool = False

    model_config = {"env_file": ".env"}


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
