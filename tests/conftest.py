from __future__ import annotations

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
FIXED_TODAY = date(2024, 6, 15)


class FixedAnalyzer:
    """Sentiment stub returning a constant polarity."""

    def __init__(self, polarity: int = 1) -> None:
        self.polarity = polarity
        self.calls: list[str] = []

    def analyze(self, text: str) -> int:
        self.calls.append(text)
        return self.polarity


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def analyzer() -> FixedAnalyzer:
    return FixedAnalyzer()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    from ingestion.settings import reset_settings_cache

    reset_settings_cache()
    yield
    reset_settings_cache()
