"""
HTTP fetcher for catalog pages.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

import requests

from app.crawler.errors import ItemNotFoundError, TransientFetchError
from app.crawler.parsing.whisky_parser import looks_like_missing_page
from app.crawler.rate_limiter import MinIntervalRateLimiter
from app.crawler.raw_store import RawPageStore

logger = logging.getLogger(__name__)

DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class WhiskyPageFetcher:
    """
    Fetch `{base_url}/whisky/{id}` with one requests.Session per thread.

    A page already in the raw store is served without a request. Successful
    and 404 bodies are written to the store, so missing ids are not requested
    again on a later run. Other error statuses are never cached.
    """

    def __init__(
        self,
        *,
        base_url: str,
        user_agent: str,
        timeout_seconds: float,
        rate_limiter: MinIntervalRateLimiter | None = None,
        raw_store: RawPageStore | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._rate_limiter = rate_limiter
        self._raw_store = raw_store
        self._session_factory = session_factory
        self._local = threading.local()
        self.request_headers = {"User-Agent": user_agent, "Accept": DEFAULT_ACCEPT}

    def url_for(self, item_id: int) -> str:
        return f"{self._base_url}/whisky/{item_id}"

    def fetch(self, item_id: int) -> str:
        if self._raw_store is not None:
            cached = self._raw_store.load(item_id)
            if cached is not None:
                if looks_like_missing_page(cached):
                    raise ItemNotFoundError(item_id)
                return cached

        if self._rate_limiter is not None:
            self._rate_limiter.wait()

        url = self.url_for(item_id)
        try:
            response = self._session().get(
                url,
                headers=self.request_headers,
                timeout=self._timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise TransientFetchError(item_id, f"{type(exc).__name__}: {exc}") from exc

        html = response.text
        if response.status_code == 404:
            self._cache(item_id, html)
            raise ItemNotFoundError(item_id)
        if not 200 <= response.status_code < 300:
            raise TransientFetchError(
                item_id,
                f"HTTP {response.status_code} for {url}",
                status_code=response.status_code,
            )
        self._cache(item_id, html)
        return html

    def _cache(self, item_id: int, html: str) -> None:
        # Only 2xx and 404 bodies are cached.
        if self._raw_store is not None:
            self._raw_store.save(item_id, html)

    def close(self) -> None:
        session = getattr(self._local, "session", None)
        if session is not None:
            session.close()
            self._local.session = None

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            self._local.session = session
        return session
