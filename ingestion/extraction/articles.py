"""Candidate discovery and article assembly for a single listing page."""

from __future__ import annotations

import re
from typing import Iterator, List, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

from analysis.scoring import Scorer
from ingestion.models.domain import Article, RawCandidate, SourceConfig
from ingestion.utils.logging import get_logger

from .dates import DateResolver

logger = get_logger(__name__)

MIN_TITLE_LENGTH = 20
HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")
TITLE_CLASS_RE = re.compile(r"(?:entry|article|post)-title")
_BYLINE_RE = re.compile(r"^(?i:by|from)\s+[A-Z][\w'.\-]*\s+[A-Z][\w'.\-]*\s*[:|,\-]?\s*")
_SKIP_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


def normalize_title(text: str) -> str:
    """Collapse whitespace and strip a leading "By First Last" / "From First Last" byline."""
    title = " ".join(text.split())
    return _BYLINE_RE.sub("", title, count=1).strip()


def resolve_link(href: str, base_url: str) -> Optional[str]:
    """Return an absolute URL for ``href`` or ``None`` for non-navigational links."""
    link = href.strip()
    if not link or link.lower().startswith(_SKIP_HREF_PREFIXES):
        return None
    if link.startswith(("http://", "https://")):
        return link
    base = base_url.rstrip("/")
    if link.startswith("//"):
        return f"{urlsplit(base).scheme or 'https'}:{link}"
    if not link.startswith("/"):
        link = "/" + link
    return base + link


def _has_image(element: Tag) -> bool:
    return element.name == "img" or element.find("img") is not None


def _text_length(element: Tag) -> int:
    return len(" ".join(element.get_text(" ", strip=True).split()))


def select_title_element(container: Tag) -> Optional[Tag]:
    """Styled title heading, else first image-free heading, else first long image-free link."""
    styled = container.find(HEADINGS, class_=TITLE_CLASS_RE)
    if styled is not None:
        return styled
    for heading in container.find_all(HEADINGS):
        if not _has_image(heading) and heading.get_text(strip=True):
            return heading
    for anchor in container.find_all("a", href=True):
        if not _has_image(anchor) and _text_length(anchor) > MIN_TITLE_LENGTH:
            return anchor
    return None


def _link_for(title_el: Tag, container: Tag) -> Optional[str]:
    if title_el.name == "a" and title_el.get("href"):
        return title_el["href"]
    inner = title_el.find("a", href=True)
    if inner is not None:
        return inner["href"]
    enclosing = title_el.find_parent("a", href=True)
    if enclosing is not None:
        return enclosing["href"]
    first = container.find("a", href=True)
    return first["href"] if first is not None else None


def _teaser(container: Tag) -> str:
    paragraph = container.find("p")
    return paragraph.get_text(" ", strip=True) if paragraph is not None else ""


def iter_candidates(soup: BeautifulSoup) -> Iterator[RawCandidate]:
    """Yield raw candidates: ``<article>`` containers first, else every hyperlink."""
    containers = soup.find_all("article")
    if containers:
        for container in containers:
            title_el = select_title_element(container)
            if title_el is None:
                continue
            href = _link_for(title_el, container)
            if not href:
                continue
            yield RawCandidate(
                title=title_el.get_text(" ", strip=True),
                href=href,
                fragment=container,
                body=_teaser(container),
            )
        return
    for anchor in soup.find_all("a", href=True):
        if _has_image(anchor):
            continue
        parent = anchor.parent if isinstance(anchor.parent, Tag) else anchor
        yield RawCandidate(title=anchor.get_text(" ", strip=True), href=anchor["href"], fragment=parent)


class ArticleExtractor:
    """Turn one source's listing HTML into scored, dated articles."""

    def __init__(self, scorer: Scorer, date_resolver: Optional[DateResolver] = None) -> None:
        self.scorer = scorer
        self.date_resolver = date_resolver or DateResolver()

    def extract(self, html: str, source: SourceConfig) -> List[Article]:
        soup = BeautifulSoup(html, "html.parser")
        articles: List[Article] = []
        seen: set[tuple[str, str]] = set()
        candidates = 0
        for candidate in iter_candidates(soup):
            candidates += 1
            article = self._build(candidate, source)
            if article is None or article.key in seen:
                continue
            seen.add(article.key)
            articles.append(article)
        logger.info(
            "extract.done",
            extra={"source": source.name, "candidates": candidates, "articles": len(articles)},
        )
        return articles

    def _build(self, candidate: RawCandidate, source: SourceConfig) -> Optional[Article]:
        title = normalize_title(candidate.title)
        if len(title) <= MIN_TITLE_LENGTH:
            return None
        link = resolve_link(candidate.href, source.base_url)
        if link is None:
            return None
        result = self.scorer.score(title, candidate.body)
        if not result.is_relevant:
            return None
        published = self.date_resolver.resolve(candidate.fragment, source.date_selector)
        return Article(
            title=title,
            link=link,
            source=source.name,
            score=result.score,
            themes=result.themes,
            published=published,
        )
