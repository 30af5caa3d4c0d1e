"""Deduplication, ordering and merging of article collections.

The formal identity of an article is its ``(title, link)`` pair. Comparison is
case-insensitive by default so headlines that differ only in capitalization
collapse; pass ``case_sensitive=True`` for exact structural equality.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from ingestion.models.domain import Article


def dedupe_articles(items: Iterable[Article], *, case_sensitive: bool = False) -> List[Article]:
    """Keep the first occurrence of every identity, preserving order."""
    seen: set[tuple[str, str]] = set()
    unique: List[Article] = []
    for article in items:
        key = article.identity(case_sensitive)
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def sort_articles(items: Iterable[Article]) -> List[Article]:
    """Newest first; ties by impact score, then original order."""
    return sorted(items, key=lambda a: (a.published, a.score), reverse=True)


def filter_window(items: Iterable[Article], cutoff: date, since: Optional[date] = None) -> List[Article]:
    """Drop articles dated before ``cutoff`` and, with ``since``, not strictly after it."""
    kept: List[Article] = []
    for article in items:
        if article.published < cutoff:
            continue
        if since is not None and article.published <= since:
            continue
        kept.append(article)
    return kept


def merge_articles(*groups: Iterable[Article], case_sensitive: bool = False) -> List[Article]:
    """Union of ``groups`` (earlier groups win on identity clashes), deduplicated and sorted."""
    combined: List[Article] = []
    for group in groups:
        combined.extend(group)
    return sort_articles(dedupe_articles(combined, case_sensitive=case_sensitive))
