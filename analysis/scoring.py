"""Relevance scoring for candidate headlines.

Two scoring modes share the same keyword gate:

* ``composite``: ``theme_hits * 2 + polarity``; relevant when at least one
  theme matched and the final score is positive.
* ``normalized``: polarity mapped onto 0-100 via ``((polarity + 5) / 10) * 100``;
  relevant when polarity is positive, a theme matched and the title is longer
  than 20 characters.

A theme match is mandatory in both modes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Protocol, Tuple

from .sentiment import LexiconSentimentAnalyzer, SentimentAnalyzer
from .taxonomy import Taxonomy, load_taxonomy

ScoringMode = Literal["composite", "normalized"]

MIN_TITLE_LENGTH = 20


@dataclass(frozen=True)
class RelevanceResult:
    is_relevant: bool
    score: float
    themes: Tuple[str, ...] = field(default_factory=tuple)


NOT_RELEVANT = RelevanceResult(is_relevant=False, score=0, themes=())


class Scorer(Protocol):
    def score(self, title: str, body: str = "") -> RelevanceResult: ...  # noqa: D401


@dataclass(frozen=True)
class _Gate:
    polarity: int
    theme_score: int
    themes: Tuple[str, ...]


class _TaxonomyScorer:
    mode: ScoringMode

    def __init__(self, taxonomy: Taxonomy, analyzer: SentimentAnalyzer) -> None:
        self.taxonomy = taxonomy
        self.analyzer = analyzer

    def _gate(self, title: str, body: str) -> Optional[_Gate]:
        text = f"{title} {body}".lower()
        if self.taxonomy.excluded_by(text) is not None:
            return None
        if not self.taxonomy.is_in_domain(text):
            return None
        hits = self.taxonomy.theme_hits(text)
        return _Gate(
            polarity=self.analyzer.analyze(text),
            theme_score=sum(hits.values()),
            themes=tuple(hits),
        )

    def score(self, title: str, body: str = "") -> RelevanceResult:
        gate = self._gate(title or "", body or "")
        if gate is None:
            return NOT_RELEVANT
        return self._finish(title or "", gate)

    def _finish(self, title: str, gate: _Gate) -> RelevanceResult:  # pragma: no cover - abstract
        raise NotImplementedError


class CompositeScorer(_TaxonomyScorer):
    mode: ScoringMode = "composite"

    def _finish(self, title: str, gate: _Gate) -> RelevanceResult:
        final = gate.theme_score * 2 + gate.polarity
        relevant = bool(gate.themes) and final > 0
        return RelevanceResult(is_relevant=relevant, score=final, themes=gate.themes)


class NormalizedScorer(_TaxonomyScorer):
    mode: ScoringMode = "normalized"

    def _finish(self, title: str, gate: _Gate) -> RelevanceResult:
        normalized = min(max(((gate.polarity + 5) / 10) * 100, 0.0), 100.0)
        relevant = gate.polarity > 0 and bool(gate.themes) and len(title.strip()) > MIN_TITLE_LENGTH
        return RelevanceResult(is_relevant=relevant, score=normalized, themes=gate.themes)


def build_scorer(
    mode: str = "composite",
    taxonomy: Optional[Taxonomy] = None,
    analyzer: Optional[SentimentAnalyzer] = None,
) -> _TaxonomyScorer:
    """Construct the scorer for ``mode`` with the default taxonomy/analyzer when omitted."""
    tax = taxonomy or load_taxonomy()
    sentiment = analyzer or LexiconSentimentAnalyzer()
    key = mode.strip().lower()
    if key == "composite":
        return CompositeScorer(tax, sentiment)
    if key == "normalized":
        return NormalizedScorer(tax, sentiment)
    raise ValueError(f"unknown scoring mode: {mode}")
