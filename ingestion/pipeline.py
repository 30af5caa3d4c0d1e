"""Aggregation across all configured sources."""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Sequence, Union

from analysis.scoring import build_scorer
from analysis.taxonomy import load_taxonomy
from ingestion.connectors.page_fetcher import HttpPageFetcher
from ingestion.extraction.articles import ArticleExtractor
from ingestion.extraction.dates import DateResolver
from ingestion.models.domain import Article, SourceConfig
from ingestion.services.deduplicator import dedupe_articles, filter_window, sort_articles
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]
Cursor = Union[datetime, date]


class PageFetcher(Protocol):
    def fetch(self, url: str) -> str: ...  # noqa: D401


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cursor_date(since: Optional[Cursor]) -> Optional[date]:
    """Calendar date of a since cursor; aware datetimes are read in UTC."""
    if since is None:
        return None
    if isinstance(since, datetime):
        if since.tzinfo is not None:
            since = since.astimezone(timezone.utc)
        return since.date()
    return since


class AggregationPipeline:
    """Fan the extractor out over sources, then window, dedupe and sort."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: ArticleExtractor,
        *,
        recency_days: int = 30,
        max_workers: int = 1,
        clock: Optional[Clock] = None,
        case_sensitive: bool = False,
    ) -> None:
        self.fetcher = fetcher
        self.extractor = extractor
        self.recency_days = recency_days
        self.max_workers = max(1, max_workers)
        self.clock = clock or utc_now
        self.case_sensitive = case_sensitive

    def cutoff(self, now: datetime) -> date:
        return now.date() - timedelta(days=self.recency_days)

    def aggregate(self, sources: Sequence[SourceConfig], since: Optional[Cursor] = None) -> List[Article]:
        now = self.clock()
        trace_id = str(uuid.uuid4())
        active = [s for s in sources if s.enabled]
        logger.info(
            "aggregate.start",
            extra={"trace_id": trace_id, "sources": len(active), "since": since.isoformat() if since else None},
        )

        fetched: List[Article] = []
        for batch in self._run_sources(active, trace_id):
            fetched.extend(batch)

        windowed = filter_window(fetched, self.cutoff(now), cursor_date(since))
        unique = dedupe_articles(windowed, case_sensitive=self.case_sensitive)
        result = sort_articles(unique)
        logger.info(
            "aggregate.done",
            extra={
                "trace_id": trace_id,
                "fetched": len(fetched),
                "windowed": len(windowed),
                "unique": len(result),
            },
        )
        return result

    def _run_sources(self, sources: Sequence[SourceConfig], trace_id: str) -> List[List[Article]]:
        if self.max_workers == 1 or len(sources) <= 1:
            return [self._collect_isolated(source, trace_id) for source in sources]
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="aggregate") as pool:
            futures = [pool.submit(self._collect_isolated, source, trace_id) for source in sources]
            # results are merged in source-list order once every source has finished
            return [future.result() for future in futures]

    def _collect_isolated(self, source: SourceConfig, trace_id: str) -> List[Article]:
        try:
            html = self.fetcher.fetch(source.url)
            articles = self.extractor.extract(html, source)
        except Exception as exc:  # noqa: BLE001 - one source never aborts the run
            logger.warning(
                "aggregate.source.failed",
                extra={"trace_id": trace_id, "source": source.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return []
        logger.info(
            "aggregate.source.done",
            extra={"trace_id": trace_id, "source": source.name, "articles": len(articles)},
        )
        return articles


def build_pipeline(
    settings: Optional[Settings] = None,
    *,
    fetcher: Optional[PageFetcher] = None,
    clock: Optional[Clock] = None,
) -> AggregationPipeline:
    """Wire taxonomy, scorer, date resolver, extractor and fetcher from settings."""
    cfg = settings or get_settings()
    now = clock or utc_now
    taxonomy = load_taxonomy(cfg.taxonomy_scheme, cfg.taxonomy_path)
    scorer = build_scorer(cfg.scoring_mode, taxonomy)
    extractor = ArticleExtractor(scorer, DateResolver(today=lambda: now().date()))
    return AggregationPipeline(
        fetcher or HttpPageFetcher(cfg),
        extractor,
        recency_days=int(cfg.recency_days),
        max_workers=int(cfg.fetch_max_workers),
        clock=now,
        case_sensitive=cfg.dedupe_case_sensitive,
    )
