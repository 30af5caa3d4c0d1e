"""Article cache stores: in-process (default) and Redis-backed."""

from __future__ import annotations

import json
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Protocol, Sequence

from redis.exceptions import RedisError

from ingestion.models.domain import Article, CacheEntry
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 3600


class ArticleCacheStore(Protocol):
    def get(self) -> Optional[CacheEntry]: ...  # noqa: D401
    def set(self, articles: Sequence[Article], fetched_at: datetime) -> CacheEntry: ...  # noqa: D401
    def clear(self) -> None: ...  # noqa: D401


class InMemoryArticleCache:
    """Single cache entry held in process memory; expires as a whole after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[CacheEntry] = None
        self._expires_at = 0.0

    def get(self) -> Optional[CacheEntry]:
        with self._lock:
            if self._entry is None:
                return None
            if self._clock() >= self._expires_at:
                self._entry = None
                logger.info("cache.expired")
                return None
            return self._entry

    def set(self, articles: Sequence[Article], fetched_at: datetime) -> CacheEntry:
        entry = CacheEntry(articles=tuple(articles), fetched_at=fetched_at)
        with self._lock:
            self._entry = entry
            self._expires_at = self._clock() + self.ttl_seconds
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entry = None
            self._expires_at = 0.0


class _RedisLikeClient(Protocol):
    def get(self, name: str) -> Optional[str]: ...
    def setex(self, name: str, time: int, value: str) -> object: ...
    def delete(self, *names: str) -> int: ...


class RedisArticleCache:
    """Redis cache entry shared across API workers and the refresh task.

    Redis failures degrade to a cache miss (reads) or a skipped write.
    """

    def __init__(self, client: _RedisLikeClient, *, key: str = "greenfeed:articles", ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.key = key
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, **kwargs) -> "RedisArticleCache":
        import redis

        return cls(redis.Redis.from_url(redis_url, decode_responses=True), **kwargs)

    def get(self) -> Optional[CacheEntry]:
        try:
            data = self.client.get(self.key)
        except RedisError as exc:
            logger.warning("cache.redis.read_failed", extra={"error": str(exc)})
            return None
        if not data:
            return None
        try:
            payload = json.loads(data)
            return CacheEntry(
                articles=tuple(Article.model_validate(item) for item in payload["articles"]),
                fetched_at=datetime.fromisoformat(payload["fetched_at"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("cache.redis.corrupt", extra={"error": str(exc)})
            return None

    def set(self, articles: Sequence[Article], fetched_at: datetime) -> CacheEntry:
        entry = CacheEntry(articles=tuple(articles), fetched_at=fetched_at)
        payload = {
            "fetched_at": fetched_at.isoformat(),
            "articles": [a.model_dump(mode="json") for a in entry.articles],
        }
        try:
            self.client.setex(self.key, self.ttl_seconds, json.dumps(payload))
        except RedisError as exc:
            logger.warning("cache.redis.write_failed", extra={"error": str(exc)})
        return entry

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except RedisError as exc:
            logger.warning("cache.redis.clear_failed", extra={"error": str(exc)})
