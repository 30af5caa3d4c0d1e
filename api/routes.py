from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ingestion.utils.logging import get_logger

from .controller import NewsCacheController
from .dependencies import get_news_controller
from .models import ArticleOut, CacheClearResponse

router = APIRouter(prefix="/api")
logger = get_logger(__name__)

ControllerDep = Annotated[NewsCacheController, Depends(get_news_controller)]


@router.get("/news", response_model=list[ArticleOut])
def list_news_route(
    controller: ControllerDep,
    since: datetime | None = Query(default=None, description="ISO-8601 incremental refresh cursor"),
) -> list[ArticleOut]:
    try:
        articles = controller.get_articles(since=since)
    except Exception as exc:  # noqa: BLE001 - surfaced as a bounded 500
        logger.exception("api.news.failed")
        raise HTTPException(status_code=500, detail=str(exc) or type(exc).__name__) from exc
    return [ArticleOut.from_article(a) for a in articles]


@router.delete("/cache/articles", response_model=CacheClearResponse)
def clear_article_cache_route(controller: ControllerDep) -> CacheClearResponse:
    controller.clear()
    return CacheClearResponse()
