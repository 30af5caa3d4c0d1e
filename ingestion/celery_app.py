"""Celery application bootstrap for periodic cache refresh."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict

from celery import Celery
from celery.schedules import schedule as celery_schedule

from .settings import Settings, get_settings
from .utils.logging import configure_logging

REFRESH_TASK_NAME = "ingestion.tasks.refresh.refresh_news_cache"

_CELERY_APP: Celery | None = None


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Build a Celery instance from settings."""
    config = settings or get_settings()
    configure_logging(config.structlog_level, json_enabled=config.log_json)

    app = Celery("ingestion", broker=config.redis_url, backend=config.redis_url)
    app.conf.update(
        task_default_queue="ingestion.default",
        task_default_exchange="ingestion",
        task_default_routing_key="ingestion.default",
        # one refresh pass touches every source sequentially at worst
        task_soft_time_limit=int(config.fetch_timeout_seconds) * max(1, len(config.load_sources())) + 30,
        beat_schedule=_build_beat_schedule(config),
        timezone="UTC",
        enable_utc=True,
    )

    app.autodiscover_tasks(["ingestion.tasks"], related_name="refresh")
    _install_signal_handlers(app)
    return app


def get_celery_app() -> Celery:
    """Return the singleton Celery instance."""
    global _CELERY_APP
    if _CELERY_APP is None:
        _CELERY_APP = create_celery_app()
    return _CELERY_APP


def _build_beat_schedule(settings: Settings) -> Dict[str, Dict[str, Any]]:
    if settings.refresh_interval_minutes <= 0:
        return {}
    return {
        "refresh.news_cache": {
            "task": REFRESH_TASK_NAME,
            "schedule": celery_schedule(timedelta(minutes=settings.refresh_interval_minutes)),
            "options": {"queue": "ingestion.refresh", "expires": settings.refresh_interval_minutes * 60},
        }
    }


def _install_signal_handlers(app: Celery) -> None:
    from celery import signals

    logger = logging.getLogger("ingestion.worker")

    @signals.worker_shutdown.connect  # type: ignore[attr-defined]
    def _on_worker_shutdown(sender=None, **kwargs):  # noqa: ANN001
        logger.info("worker.shutdown", extra={"sender": str(sender)})
