from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List

import pytest

from analysis.scoring import CompositeScorer
from analysis.taxonomy import load_taxonomy
from ingestion.connectors.base import TransientError
from ingestion.extraction.articles import ArticleExtractor
from ingestion.extraction.dates import DateResolver
from ingestion.models.domain import SourceConfig
from ingestion.pipeline import AggregationPipeline, build_pipeline, cursor_date
from ingestion.settings import Settings

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _card(title: str, href: str, day: str) -> str:
    return f'<article><h2>{title}</h2><a href="{href}">more</a><time datetime="{day}"></time></article>'


class FakeFetcher:
    def __init__(self, pages: Dict[str, object]) -> None:
        self.pages = pages
        self.calls: List[str] = []

    def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


SOURCES = [
    SourceConfig(name="Alpha", url="https://alpha.example/env", base_url="https://alpha.example"),
    SourceConfig(name="Broken", url="https://broken.example/env", base_url="https://broken.example"),
    SourceConfig(name="Beta", url="https://beta.example/env", base_url="https://alpha.example"),
]

PAGES = {
    "https://alpha.example/env": (
        _card("Coral reef recovery accelerates after restoration project", "/reef", "2024-06-14")
        + _card("Endangered turtles thriving in protected marine sanctuary", "/turtles", "2024-06-05")
        + _card("Wetland restoration success inspires regional initiative", "/wetland", "2024-04-01")
    ),
    "https://broken.example/env": TransientError("timeout"),
    "https://beta.example/env": (
        _card("CORAL REEF RECOVERY ACCELERATES AFTER RESTORATION PROJECT", "/reef", "2024-06-14")
        + _card("Community volunteers plant thousands of native trees", "/trees", "2024-06-12")
    ),
}


def _pipeline(fetcher, analyzer, **kwargs) -> AggregationPipeline:
    analyzer.polarity = 0
    extractor = ArticleExtractor(
        CompositeScorer(load_taxonomy("impact"), analyzer),
        DateResolver(today=lambda: NOW.date()),
    )
    return AggregationPipeline(fetcher, extractor, clock=lambda: NOW, **kwargs)


def test_aggregate_isolates_failures_windows_dedupes_and_sorts(analyzer):
    fetcher = FakeFetcher(PAGES)

    articles = _pipeline(fetcher, analyzer).aggregate(SOURCES)

    assert fetcher.calls == [s.url for s in SOURCES]
    assert [a.link for a in articles] == [
        "https://alpha.example/reef",
        "https://alpha.example/trees",
        "https://alpha.example/turtles",
    ]
    assert articles[0].source == "Alpha"
    assert [a.published for a in articles] == [date(2024, 6, 14), date(2024, 6, 12), date(2024, 6, 5)]


def test_case_sensitive_mode_keeps_capitalization_variants(analyzer):
    articles = _pipeline(FakeFetcher(PAGES), analyzer, case_sensitive=True).aggregate(SOURCES)

    assert len([a for a in articles if a.link == "https://alpha.example/reef"]) == 2


def test_build_pipeline_honours_case_sensitive_setting():
    strict = build_pipeline(Settings(dedupe_case_sensitive=True), fetcher=FakeFetcher(PAGES), clock=lambda: NOW)
    relaxed = build_pipeline(Settings(), fetcher=FakeFetcher(PAGES), clock=lambda: NOW)

    assert strict.case_sensitive is True
    assert relaxed.case_sensitive is False


def test_since_cursor_keeps_only_strictly_newer(analyzer):
    since = datetime(2024, 6, 12, 8, 30, tzinfo=timezone.utc)

    articles = _pipeline(FakeFetcher(PAGES), analyzer).aggregate(SOURCES, since=since)

    assert [a.published for a in articles] == [date(2024, 6, 14)]


def test_every_article_is_inside_the_recency_window(analyzer):
    pipeline = _pipeline(FakeFetcher(PAGES), analyzer, recency_days=7)

    articles = pipeline.aggregate(SOURCES)

    cutoff = pipeline.cutoff(NOW)
    assert cutoff == date(2024, 6, 8)
    assert articles and all(a.published >= cutoff for a in articles)
    assert len({a.identity() for a in articles}) == len(articles)


def test_disabled_sources_are_not_fetched(analyzer):
    sources = [SOURCES[0], SOURCES[2].model_copy(update={"enabled": False})]
    fetcher = FakeFetcher(PAGES)

    _pipeline(fetcher, analyzer).aggregate(sources)

    assert fetcher.calls == ["https://alpha.example/env"]


def test_parallel_run_matches_sequential(analyzer):
    sequential = _pipeline(FakeFetcher(PAGES), analyzer).aggregate(SOURCES)
    parallel = _pipeline(FakeFetcher(PAGES), analyzer, max_workers=3).aggregate(SOURCES)

    assert parallel == sequential


def test_extractor_errors_are_isolated_per_source(analyzer):
    class ExplodingExtractor(ArticleExtractor):
        def extract(self, html, source):
            if source.name == "Alpha":
                raise ValueError("parse failure")
            return super().extract(html, source)

    analyzer.polarity = 0
    extractor = ExplodingExtractor(
        CompositeScorer(load_taxonomy("impact"), analyzer), DateResolver(today=lambda: NOW.date())
    )
    pipeline = AggregationPipeline(FakeFetcher(PAGES), extractor, clock=lambda: NOW)

    articles = pipeline.aggregate(SOURCES)

    assert {a.source for a in articles} == {"Beta"}


@pytest.mark.parametrize(
    ("since", "expected"),
    [
        (None, None),
        (date(2024, 6, 1), date(2024, 6, 1)),
        (datetime(2024, 6, 1, 23, 30), date(2024, 6, 1)),
        (datetime.fromisoformat("2024-06-02T01:00:00+02:00"), date(2024, 6, 1)),
    ],
)
def test_cursor_date(since, expected):
    assert cursor_date(since) == expected
