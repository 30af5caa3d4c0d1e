from __future__ import annotations

import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

import pytest

from api.cache import InMemoryArticleCache
from api.controller import NewsCacheController
from ingestion.models.domain import Article, SourceConfig

T0 = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
SOURCES = [SourceConfig(name="Ex", url="https://ex.org/env", base_url="https://ex.org")]


def _article(title: str, day: int) -> Article:
    return Article(
        title=title,
        link=f"https://ex.org/{title.split()[0].lower()}",
        source="Ex",
        score=3,
        themes=("recovery",),
        published=date(2024, 6, day),
    )


class FakePipeline:
    case_sensitive = False

    def __init__(self, *batches: List[Article]) -> None:
        self.batches = list(batches)
        self.calls: List[Optional[datetime]] = []

    def cutoff(self, now: datetime) -> date:
        return now.date() - timedelta(days=30)

    def aggregate(self, sources, since=None):
        self.calls.append(since)
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _controller(pipeline, clock=None):
    return NewsCacheController(pipeline, SOURCES, InMemoryArticleCache(ttl_seconds=3600), clock=clock or _Clock(T0))


def test_empty_cache_triggers_full_fetch_and_populates():
    pipeline = FakePipeline([_article("Reef recovery story", 14)])
    controller = _controller(pipeline)

    articles = controller.get_articles()

    assert [a.title for a in articles] == ["Reef recovery story"]
    assert pipeline.calls == [None]
    assert controller.last_fetched_at == T0


def test_populated_cache_without_cursor_is_served_without_network():
    pipeline = FakePipeline([_article("Reef recovery story", 14)])
    controller = _controller(pipeline)
    controller.get_articles()

    first = controller.get_articles()
    second = controller.get_articles()

    assert first == second
    assert pipeline.calls == [None]


def test_since_without_new_articles_keeps_cache_and_timestamp():
    clock = _Clock(T0)
    pipeline = FakePipeline([_article("Reef recovery story", 14)], [])
    controller = _controller(pipeline, clock)
    cached = controller.get_articles()

    clock.now = T0 + timedelta(minutes=20)
    result = controller.get_articles(since=T0)

    assert result == cached
    assert pipeline.calls == [None, T0]
    assert controller.last_fetched_at == T0


def test_since_with_new_articles_merges_and_updates_timestamp():
    clock = _Clock(T0)
    old = _article("Reef recovery story", 14)
    pipeline = FakePipeline([old], [_article("Forest revival story", 16), _article("reef RECOVERY story", 14)])
    controller = _controller(pipeline, clock)
    controller.get_articles()

    clock.now = T0 + timedelta(days=1)
    merged = controller.get_articles(since=T0)

    assert [a.title for a in merged] == ["Forest revival story", "reef RECOVERY story"]
    assert controller.last_fetched_at == clock.now
    assert controller.get_articles() == merged


def test_merge_drops_articles_that_aged_out_of_the_window():
    clock = _Clock(T0)
    pipeline = FakePipeline([_article("Reef recovery story", 1)], [_article("Forest revival story", 30)])
    controller = _controller(pipeline, clock)
    controller.get_articles()

    clock.now = datetime(2024, 7, 10, tzinfo=timezone.utc)
    merged = controller.get_articles(since=T0)

    assert [a.title for a in merged] == ["Forest revival story"]


def test_failed_refresh_keeps_previous_cache():
    pipeline = FakePipeline([_article("Reef recovery story", 14)], RuntimeError("all sources down"))
    controller = _controller(pipeline)
    cached = controller.get_articles()

    with pytest.raises(RuntimeError):
        controller.get_articles(since=T0)

    assert controller.get_articles() == cached


def test_failed_full_fetch_leaves_cache_empty():
    controller = _controller(FakePipeline(RuntimeError("boom"), [_article("Reef recovery story", 14)]))

    with pytest.raises(RuntimeError):
        controller.get_articles()

    assert controller.last_fetched_at is None
    assert len(controller.get_articles()) == 1


def test_empty_full_fetch_is_not_cached():
    pipeline = FakePipeline([], [_article("Reef recovery story", 14)])
    controller = _controller(pipeline)

    assert controller.get_articles() == []
    assert controller.last_fetched_at is None

    second = controller.get_articles()

    assert [a.title for a in second] == ["Reef recovery story"]
    assert pipeline.calls == [None, None]


def test_clear_resets_to_empty():
    pipeline = FakePipeline([_article("Reef recovery story", 14)], [_article("Forest revival story", 15)])
    controller = _controller(pipeline)
    controller.get_articles()

    controller.clear()

    assert controller.last_fetched_at is None
    assert [a.title for a in controller.get_articles()] == ["Forest revival story"]
    assert pipeline.calls == [None, None]


def test_refresh_uses_last_fetch_time_as_cursor():
    clock = _Clock(T0)
    pipeline = FakePipeline([_article("Reef recovery story", 14)], [])
    controller = _controller(pipeline, clock)

    controller.refresh()
    clock.now = T0 + timedelta(hours=1)
    controller.refresh()

    assert pipeline.calls == [None, T0]


def test_concurrent_cold_reads_collapse_into_one_fetch():
    entered = threading.Event()
    release = threading.Event()

    class SlowPipeline(FakePipeline):
        def aggregate(self, sources, since=None):
            entered.set()
            release.wait(timeout=5)
            return super().aggregate(sources, since)

    pipeline = SlowPipeline([_article("Reef recovery story", 14)])
    controller = _controller(pipeline)
    results: List[List[Article]] = []

    def _read():
        results.append(controller.get_articles())

    leader = threading.Thread(target=_read)
    leader.start()
    assert entered.wait(timeout=5)
    followers = [threading.Thread(target=_read) for _ in range(3)]
    for t in followers:
        t.start()
    time.sleep(0.05)
    release.set()
    for t in [leader, *followers]:
        t.join(timeout=5)

    assert len(pipeline.calls) == 1
    assert len(results) == 4
    assert all(r == results[0] for r in results)


def test_overlapping_refreshes_with_different_cursors_keep_both_merges():
    entered = threading.Event()
    release = threading.Event()

    class GatedPipeline(FakePipeline):
        def aggregate(self, sources, since=None):
            if len(self.calls) == 1:
                entered.set()
                release.wait(timeout=5)
            return super().aggregate(sources, since)

    clock = _Clock(T0)
    pipeline = GatedPipeline(
        [_article("Base story about reef recovery", 10)],
        [_article("Alpha story about reef recovery", 13)],
        [_article("Beta story about reef recovery", 14)],
    )
    controller = _controller(pipeline, clock)
    controller.get_articles()

    first = threading.Thread(target=controller.get_articles, kwargs={"since": datetime(2024, 6, 11, tzinfo=timezone.utc)})
    second = threading.Thread(target=controller.get_articles, kwargs={"since": datetime(2024, 6, 12, tzinfo=timezone.utc)})
    first.start()
    assert entered.wait(timeout=5)
    second.start()
    time.sleep(0.05)
    # the second refresh has not reached the pipeline while the first holds the entry
    assert len(pipeline.calls) == 1
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert [a.title for a in controller.get_articles()] == [
        "Beta story about reef recovery",
        "Alpha story about reef recovery",
        "Base story about reef recovery",
    ]
    assert len(pipeline.calls) == 3
