"""Domain types for the article pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple

from bs4 import Tag
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceConfig(BaseModel):
    """A news desk to scrape, loaded once at startup."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique display label")
    url: str = Field(..., description="Listing page to fetch")
    base_url: str = Field(..., description="Prefix for relative links")
    date_selector: Optional[str] = Field(None, description="CSS selector hint for the publish date")
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("source name cannot be blank")
        return name

    @field_validator("url", "base_url")
    @classmethod
    def _require_http(cls, value: str) -> str:
        url = value.strip()
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"expected an absolute http(s) URL, got {value!r}")
        return url.rstrip("/") if url.count("/") > 2 else url


@dataclass(frozen=True)
class RawCandidate:
    """A title/link pair found in a document, before normalization."""

    title: str
    href: str
    fragment: Tag
    body: str = ""


class Article(BaseModel):
    """A scored, dated article. Identity is the ``(title, link)`` pair."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: str
    source: str
    score: float = Field(..., description="Impact score (composite or 0-100 normalized)")
    themes: Tuple[str, ...] = ()
    published: date

    @property
    def key(self) -> Tuple[str, str]:
        return (self.title, self.link)

    def identity(self, case_sensitive: bool = False) -> Tuple[str, str]:
        if case_sensitive:
            return self.key
        return (self.title.casefold(), self.link.casefold())


@dataclass(frozen=True)
class CacheEntry:
    articles: Tuple[Article, ...]
    fetched_at: datetime
