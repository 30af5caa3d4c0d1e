"""Pull-based cache controller: serve cached, full fetch, or incremental merge."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Sequence

from ingestion.models.domain import Article, CacheEntry, SourceConfig
from ingestion.pipeline import AggregationPipeline, Clock, cursor_date, utc_now
from ingestion.services.deduplicator import filter_window, merge_articles
from ingestion.utils.logging import get_logger

from .cache import ArticleCacheStore

logger = get_logger(__name__)


class NewsCacheController:
    """Owns the article cache entry and decides how each read is answered.

    * empty cache (no entry, or an entry without articles): full aggregation,
      stored only when it found something
    * populated, no cursor: cached set, no network
    * populated with cursor: aggregate newer articles and merge them in;
      when nothing new arrives the cached set and its timestamp stay untouched

    Every read-modify-write of the entry runs under one refresh lock, so
    refreshes with different cursors never overwrite each other's merge.
    Concurrent callers with the same cursor wait for the in-flight run and
    share its result.
    """

    def __init__(
        self,
        pipeline: AggregationPipeline,
        sources: Sequence[SourceConfig],
        cache: ArticleCacheStore,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self.pipeline = pipeline
        self.sources = list(sources)
        self.cache = cache
        self.clock = clock or utc_now
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._inflight: Dict[Optional[date], Future] = {}

    @property
    def last_fetched_at(self) -> Optional[datetime]:
        entry = self.cache.get()
        return entry.fetched_at if entry is not None else None

    def get_articles(self, since: Optional[datetime] = None) -> List[Article]:
        entry = self.cache.get()
        if _is_empty(entry):
            return self._single_flight(None, self._full_fetch)
        if since is None:
            logger.info("cache.hit", extra={"articles": len(entry.articles)})
            return list(entry.articles)
        return self._single_flight(cursor_date(since), lambda: self._incremental(since))

    def refresh(self) -> List[Article]:
        """Incremental pass from the last fetch time (full fetch when empty)."""
        return self.get_articles(since=self.last_fetched_at)

    def clear(self) -> None:
        self.cache.clear()
        logger.info("cache.cleared")

    def _full_fetch(self) -> List[Article]:
        entry = self.cache.get()
        if not _is_empty(entry):
            # another refresh populated the cache while we waited for the lock
            return list(entry.articles)
        started = self.clock()
        articles = self.pipeline.aggregate(self.sources)
        if not articles:
            logger.warning("cache.populate.empty", extra={"fetched_at": started.isoformat()})
            return []
        self.cache.set(articles, started)
        logger.info("cache.populated", extra={"articles": len(articles), "fetched_at": started.isoformat()})
        return articles

    def _incremental(self, since: datetime) -> List[Article]:
        entry = self.cache.get()
        if _is_empty(entry):
            return self._full_fetch()
        started = self.clock()
        fresh = self.pipeline.aggregate(self.sources, since=since)
        if not fresh:
            logger.info("cache.refresh.unchanged", extra={"since": since.isoformat()})
            return list(entry.articles)
        merged = filter_window(
            merge_articles(fresh, entry.articles, case_sensitive=self.pipeline.case_sensitive),
            self.pipeline.cutoff(started),
        )
        self.cache.set(merged, started)
        logger.info(
            "cache.refresh.merged",
            extra={"new": len(fresh), "articles": len(merged), "fetched_at": started.isoformat()},
        )
        return merged

    def _single_flight(self, key: Optional[date], work: Callable[[], List[Article]]) -> List[Article]:
        with self._lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = Future()
                self._inflight[key] = flight
        if not leader:
            logger.info("cache.refresh.joined", extra={"cursor": key.isoformat() if key else None})
            return list(flight.result())
        try:
            with self._refresh_lock:
                result = work()
        except Exception as exc:
            flight.set_exception(exc)
            raise
        else:
            flight.set_result(result)
            return result
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            if not flight.done():
                flight.cancel()


def _is_empty(entry: Optional[CacheEntry]) -> bool:
    return entry is None or not entry.articles
