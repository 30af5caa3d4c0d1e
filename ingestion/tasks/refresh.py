"""Celery task driving periodic incremental refresh of the article cache."""

from __future__ import annotations

from celery import shared_task

from ingestion.settings import get_settings
from ingestion.utils.logging import get_logger


def refresh_core() -> int:
    """Run one controller refresh; returns the cached article count."""
    # imported lazily so the worker does not load the web layer at startup
    from api.dependencies import build_controller

    logger = get_logger(__name__)
    settings = get_settings()
    if not settings.cache_redis_url:
        logger.warning("refresh.local_cache", extra={"reason": "CACHE_REDIS_URL unset; worker cache is not shared"})
    controller = build_controller(settings)
    articles = controller.refresh()
    logger.info("refresh.done", extra={"articles": len(articles)})
    return len(articles)


@shared_task(name="ingestion.tasks.refresh.refresh_news_cache")
def refresh_news_cache() -> int:  # pragma: no cover - wrapper
    return refresh_core()
