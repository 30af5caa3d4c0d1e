"""httpx-backed listing page fetcher."""

from __future__ import annotations

from typing import Callable, Dict, Optional

import httpx

from ingestion.settings import Settings, get_settings

from .base import BasePageFetcher, PermanentError, TransientError

ProviderFn = Callable[[str], str]


class HttpPageFetcher(BasePageFetcher):
    """Fetches listing pages with browser-like headers.

    - provider injected: offline mode for tests
    - otherwise: real HTTP GET through httpx
    """

    def __init__(self, settings: Optional[Settings] = None, provider: Optional[ProviderFn] = None):
        self._settings = settings
        self._provider = provider
        cfg = self._cfg()
        self.max_attempts = int(cfg.fetch_max_attempts)

    def _cfg(self) -> Settings:
        return self._settings or get_settings()

    def _headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self._cfg().fetch_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def _fetch_raw(self, url: str) -> str:
        if self._provider is not None:
            return self._provider(url)

        cfg = self._cfg()
        try:
            resp = httpx.get(
                url,
                headers=self._headers(),
                timeout=float(cfg.fetch_timeout_seconds),
                follow_redirects=True,
            )
        except httpx.TimeoutException as exc:
            raise TransientError(f"timeout fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"HTTP error fetching {url}: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(f"upstream temporary failure {resp.status_code} for {url}")
        if resp.status_code >= 400:
            raise PermanentError(f"upstream error {resp.status_code} for {url}")

        content_type = resp.headers.get("content-type", "")
        if content_type and not any(kind in content_type for kind in ("html", "xml", "text/")):
            raise PermanentError(f"unexpected content type {content_type!r} for {url}")
        return resp.text
