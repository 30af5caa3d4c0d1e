from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field

from ingestion.models.domain import Article


class ArticleOut(BaseModel):
    title: str
    link: str
    source: str
    sentiment: float = Field(..., description="Impact score")
    themes: list[str] = Field(default_factory=list)
    date: dt.date

    @classmethod
    def from_article(cls, article: Article) -> "ArticleOut":
        return cls(
            title=article.title,
            link=article.link,
            source=article.source,
            sentiment=article.score,
            themes=list(article.themes),
            date=article.published,
        )


class CacheClearResponse(BaseModel):
    status: Literal["cleared"] = "cleared"
    message: str = "Article cache cleared"
