"""Page fetcher abstraction, errors, and retry loop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class ConnectorError(Exception):
    """Base fetch error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., timeout, rate limit, 5xx)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx, non-HTML payload)."""


class BasePageFetcher(ABC):
    """Fetch raw HTML for a URL, retrying transient failures."""

    max_attempts: int = 2

    def fetch(self, url: str, *, max_attempts: Optional[int] = None) -> str:
        limit = max_attempts or self.max_attempts
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < limit:
            attempts += 1
            try:
                return self._fetch_raw(url)
            except TransientError as exc:  # retry
                last_error = exc
                if attempts >= limit:
                    raise
            except PermanentError:
                raise
        assert last_error is not None
        raise last_error

    @abstractmethod
    def _fetch_raw(self, url: str) -> str:
        """Return the response body for ``url``."""
