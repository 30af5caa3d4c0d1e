"""Configuration models for the news ingestion pipeline."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Literal, Optional

from pydantic import Field, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.models.domain import SourceConfig

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Environment-driven settings for fetching, scoring and caching."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    news_sources: List[SourceConfig] = Field(
        default_factory=list,
        alias="NEWS_SOURCES",
        description="JSON array of sources; overrides the bundled list when set.",
    )
    news_sources_file: Optional[str] = Field(None, alias="NEWS_SOURCES_FILE", description="Path to a sources JSON file.")
    fetch_timeout_seconds: PositiveInt = Field(15, alias="FETCH_TIMEOUT_SECONDS", description="Per-source fetch timeout.")
    fetch_max_attempts: PositiveInt = Field(2, alias="FETCH_MAX_ATTEMPTS", description="Attempts per source on transient errors.")
    fetch_max_workers: PositiveInt = Field(1, alias="FETCH_MAX_WORKERS", description="Parallel source fetches (1 = sequential).")
    fetch_user_agent: str = Field(DEFAULT_USER_AGENT, alias="FETCH_USER_AGENT", description="Browser-like User-Agent header.")
    recency_days: PositiveInt = Field(30, alias="RECENCY_DAYS", description="Recency window in days.")
    dedupe_case_sensitive: bool = Field(
        False, alias="DEDUPE_CASE_SENSITIVE", description="Compare (title, link) identities case-sensitively."
    )
    scoring_mode: Literal["composite", "normalized"] = Field(
        "composite", alias="SCORING_MODE", description="Impact score formula."
    )
    taxonomy_scheme: str = Field("impact", alias="TAXONOMY_SCHEME", description="Bundled keyword taxonomy name.")
    taxonomy_path: Optional[str] = Field(None, alias="TAXONOMY_PATH", description="Custom taxonomy JSON file.")
    cache_ttl_seconds: PositiveInt = Field(3600, alias="CACHE_TTL_SECONDS", description="Article cache TTL.")
    cache_redis_url: Optional[str] = Field(None, alias="CACHE_REDIS_URL", description="Redis DSN for a shared article cache.")
    cache_redis_key: str = Field("greenfeed:articles", alias="CACHE_REDIS_KEY", description="Redis key of the cache entry.")
    redis_url: str = Field(
        "redis://localhost:6379/0", alias="INGESTION_REDIS_URL", description="Celery broker/backend Redis DSN."
    )
    refresh_interval_minutes: int = Field(
        0, alias="REFRESH_INTERVAL_MINUTES", ge=0, description="Periodic refresh interval; 0 disables beat."
    )
    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="Log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit logs as JSON lines.")
    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ALLOW_ORIGINS",
        description="Origins allowed by the API CORS middleware.",
    )

    @field_validator("news_sources", mode="before")
    @classmethod
    def _parse_news_sources(cls, value: Any) -> List[Any]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("NEWS_SOURCES must be a JSON array") from exc
            return parsed
        if isinstance(value, list):
            return value
        raise ValueError("NEWS_SOURCES must be a list")

    @field_validator("news_sources")
    @classmethod
    def _validate_unique_sources(cls, value: List[SourceConfig]) -> List[SourceConfig]:
        return _ensure_unique_names(value)

    @field_validator("taxonomy_scheme")
    @classmethod
    def _normalize_scheme(cls, value: str) -> str:
        scheme = value.strip().lower()
        if not scheme:
            raise ValueError("TAXONOMY_SCHEME cannot be blank")
        return scheme

    @field_validator("cache_redis_url")
    @classmethod
    def _validate_cache_redis_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        if "://" not in value:
            raise ValueError("CACHE_REDIS_URL must be a valid DSN")
        return value.strip()

    def load_sources(self) -> List[SourceConfig]:
        """Resolve the configured source list (env JSON > file > bundled default)."""
        if self.news_sources:
            return list(self.news_sources)
        if self.news_sources_file:
            return load_sources_file(self.news_sources_file)
        return load_sources_file(DEFAULT_SOURCES_PATH)


DEFAULT_SOURCES_PATH = Path(__file__).resolve().parent / "data" / "sources.json"


def _ensure_unique_names(sources: List[SourceConfig]) -> List[SourceConfig]:
    seen: set[str] = set()
    for source in sources:
        if source.name in seen:
            raise ValueError(f"duplicate source name: {source.name}")
        seen.add(source.name)
    return sources


def load_sources_file(path: str | Path) -> List[SourceConfig]:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"failed to read sources file {path}: {exc}") from exc
    try:
        sources = [SourceConfig.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise RuntimeError(f"invalid sources file {path}: {exc}") from exc
    try:
        return _ensure_unique_names(sources)
    except ValueError as exc:
        raise RuntimeError(str(exc)) from exc


@lru_cache()
def get_settings() -> Settings:
    """Return the Settings built from the current environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"settings validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (used by tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
