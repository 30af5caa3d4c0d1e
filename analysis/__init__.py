"""Relevance analysis: keyword taxonomy, sentiment polarity and impact scoring."""

from .scoring import CompositeScorer, NormalizedScorer, RelevanceResult, Scorer, build_scorer  # noqa: F401
from .sentiment import LexiconSentimentAnalyzer, SentimentAnalyzer  # noqa: F401
from .taxonomy import Taxonomy, available_schemes, load_taxonomy  # noqa: F401

__all__ = [
    "CompositeScorer",
    "LexiconSentimentAnalyzer",
    "NormalizedScorer",
    "RelevanceResult",
    "Scorer",
    "SentimentAnalyzer",
    "Taxonomy",
    "available_schemes",
    "build_scorer",
    "load_taxonomy",
]
