"""Lexicon-based polarity analyzer backed by the VADER word list."""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Protocol

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

_TOKEN_RE = re.compile(r"[a-z]+(?:['-][a-z]+)*")


class SentimentAnalyzer(Protocol):
    def analyze(self, text: str) -> int: ...  # noqa: D401


class LexiconSentimentAnalyzer:
    """Sum word valences over the text and round to an integer polarity.

    Each token is looked up in the lexicon independently (no negation or
    booster handling), so the result behaves like an AFINN-style sum.
    """

    def __init__(self, lexicon: Optional[Mapping[str, float]] = None) -> None:
        if lexicon is None:
            lexicon = SentimentIntensityAnalyzer().lexicon
        self._lexicon: Dict[str, float] = {k.lower(): float(v) for k, v in lexicon.items()}

    def analyze(self, text: str) -> int:
        total = 0.0
        for token in _TOKEN_RE.findall(text.lower()):
            total += self._lexicon.get(token, 0.0)
        return int(round(total))
