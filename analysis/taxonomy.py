"""Keyword taxonomy tables loaded from JSON data files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_SCHEME = "impact"


def _normalize_keywords(values: List[str]) -> List[str]:
    seen: set[str] = set()
    keywords: List[str] = []
    for value in values:
        keyword = value.strip().lower()
        if not keyword or keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
    return keywords


class Taxonomy(BaseModel):
    """Exclusion, domain-relevance and positive-theme keyword tables.

    All keywords are stored lower-cased; matching is a plain substring test
    against lower-cased text. Theme order follows the source document.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Scheme label (e.g. impact, climate).")
    exclude: List[str] = Field(default_factory=list, description="Disqualifying topics.")
    relevance: List[str] = Field(..., min_length=1, description="In-domain vocabulary; one hit required.")
    themes: Dict[str, List[str]] = Field(..., min_length=1, description="Theme label to keyword list.")

    @field_validator("exclude", "relevance")
    @classmethod
    def _lower_keywords(cls, value: List[str]) -> List[str]:
        return _normalize_keywords(value)

    @field_validator("themes")
    @classmethod
    def _lower_theme_keywords(cls, value: Dict[str, List[str]]) -> Dict[str, List[str]]:
        themes: Dict[str, List[str]] = {}
        for label, keywords in value.items():
            name = label.strip()
            if not name:
                raise ValueError("theme label cannot be blank")
            normalized = _normalize_keywords(keywords)
            if not normalized:
                raise ValueError(f"theme '{name}' has no keywords")
            themes[name] = normalized
        return themes

    def excluded_by(self, text: str) -> Optional[str]:
        """Return the first exclude keyword found in ``text`` (already lower-cased)."""
        return next((kw for kw in self.exclude if kw in text), None)

    def is_in_domain(self, text: str) -> bool:
        return any(kw in text for kw in self.relevance)

    def theme_hits(self, text: str) -> Dict[str, int]:
        """Count keyword hits per theme; themes without hits are omitted."""
        hits: Dict[str, int] = {}
        for label, keywords in self.themes.items():
            count = sum(1 for kw in keywords if kw in text)
            if count > 0:
                hits[label] = count
        return hits


def available_schemes() -> List[str]:
    return sorted(p.stem.removeprefix("taxonomy_") for p in DATA_DIR.glob("taxonomy_*.json"))


def load_taxonomy(scheme: Optional[str] = None, path: Optional[str | Path] = None) -> Taxonomy:
    """Load a taxonomy by bundled scheme name or from an explicit JSON file."""
    if path is not None:
        source = Path(path)
    else:
        name = (scheme or DEFAULT_SCHEME).strip().lower()
        source = DATA_DIR / f"taxonomy_{name}.json"
        if not source.is_file():
            raise ValueError(f"unknown taxonomy scheme '{name}' (available: {', '.join(available_schemes())})")
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"failed to read taxonomy file {source}: {exc}") from exc
    payload.setdefault("name", source.stem.removeprefix("taxonomy_"))
    try:
        return Taxonomy.model_validate(payload)
    except ValidationError as exc:
        raise RuntimeError(f"invalid taxonomy file {source}: {exc}") from exc
