"""FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache

from ingestion.pipeline import build_pipeline
from ingestion.settings import Settings, get_settings

from .cache import ArticleCacheStore, InMemoryArticleCache, RedisArticleCache
from .controller import NewsCacheController


def build_cache_store(settings: Settings) -> ArticleCacheStore:
    if settings.cache_redis_url:
        return RedisArticleCache.from_url(
            settings.cache_redis_url,
            key=settings.cache_redis_key,
            ttl_seconds=int(settings.cache_ttl_seconds),
        )
    return InMemoryArticleCache(ttl_seconds=int(settings.cache_ttl_seconds))


def build_controller(settings: Settings) -> NewsCacheController:
    return NewsCacheController(
        build_pipeline(settings),
        settings.load_sources(),
        build_cache_store(settings),
    )


@lru_cache()
def get_news_controller() -> NewsCacheController:
    """Process-wide controller built from the current settings."""
    return build_controller(get_settings())


def reset_news_controller() -> None:
    get_news_controller.cache_clear()  # type: ignore[attr-defined]
