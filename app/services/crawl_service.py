"""
app/services/crawl_service.py

Service wiring for catalog crawl runs: settings, storage, HTTP and the engine.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.config import CrawlSettings, get_crawl_settings
from app.crawler.dead_letter import DeadLetterSink
from app.crawler.engine import CrawlEngine, CrawlOptions
from app.crawler.fetcher import WhiskyPageFetcher
from app.crawler.logging_utils import log_event
from app.crawler.progress import ProgressTracker
from app.crawler.rate_limiter import MinIntervalRateLimiter
from app.crawler.raw_store import RawPageStore
from app.crawler.scraper import WhiskyScraper
from app.crawler.storage import CrawlStorage, DryRunCrawlStorage, SQLAlchemyCrawlStorage
from app.domain.crawl import CrawlProgress, CrawlRunSummary

logger = logging.getLogger(__name__)


class CrawlAlreadyRunningError(RuntimeError):
    """Raised when a run is requested while another one is active in this process."""


class CrawlTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


def build_scraper(settings: CrawlSettings) -> WhiskyScraper:
    rate_limiter = None
    if settings.rate_limit_enabled:
        rate_limiter = MinIntervalRateLimiter(
            min_interval_seconds=settings.min_request_interval_seconds
        )
    raw_store = RawPageStore(settings.raw_data_dir) if settings.raw_data_dir else None
    fetcher = WhiskyPageFetcher(
        base_url=settings.base_url,
        user_agent=settings.user_agent,
        timeout_seconds=settings.timeout_seconds,
        rate_limiter=rate_limiter,
        raw_store=raw_store,
    )
    return WhiskyScraper(fetcher=fetcher)


class CrawlService:
    """
    Builds a CrawlEngine per run and allows one active run per process.
    """

    def __init__(
        self,
        *,
        settings: CrawlSettings | None = None,
        session_factory: Callable[[], Session] | None = None,
        storage_factory: Callable[[bool], CrawlStorage] | None = None,
        scraper_factory: Callable[[CrawlSettings], WhiskyScraper] = build_scraper,
    ) -> None:
        self._settings = settings or get_crawl_settings()
        self._session_factory = session_factory
        self._storage_factory = storage_factory or self._default_storage
        self._scraper_factory = scraper_factory

        self._lock = threading.Lock()
        self._active_engine: CrawlEngine | None = None
        self._running = False
        self.last_summary: CrawlRunSummary | None = None
        self.last_error: str | None = None

    @property
    def settings(self) -> CrawlSettings:
        return self._settings

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def get_progress(self) -> CrawlProgress:
        return ProgressTracker(self._storage_factory(False)).read()

    def run(self, options: CrawlOptions) -> CrawlRunSummary:
        """
        Run a crawl in the calling thread.
        """

        self._claim()
        return self._run_claimed(options)

    def start_run(self, options: CrawlOptions, *, executor: CrawlTaskExecutor) -> None:
        """
        Reserve the run slot and hand the crawl to `executor`.
        """

        self._claim()
        executor.submit(self._run_in_background, options)

    def request_stop(self) -> bool:
        with self._lock:
            engine = self._active_engine
        if engine is None:
            return False
        engine.request_stop()
        return True

    def _claim(self) -> None:
        with self._lock:
            if self._running:
                raise CrawlAlreadyRunningError("A crawl run is already active in this process.")
            self._running = True

    def _run_claimed(self, options: CrawlOptions) -> CrawlRunSummary:
        try:
            settings = self._settings
            if options.concurrency:
                settings = replace(settings, concurrency=options.concurrency)
            engine = CrawlEngine(
                settings=settings,
                storage=self._storage_factory(options.dry_run),
                scraper=self._scraper_factory(settings),
                dead_letter=(
                    DeadLetterSink(Path(settings.dead_letter_path))
                    if settings.dead_letter_path
                    else None
                ),
            )
            with self._lock:
                self._active_engine = engine
            summary = engine.run(options)
            self.last_summary = summary
            self.last_error = None
            return summary
        except Exception as exc:
            self.last_error = str(exc)
            raise
        finally:
            with self._lock:
                self._active_engine = None
                self._running = False

    def _run_in_background(self, options: CrawlOptions) -> None:
        try:
            self._run_claimed(options)
        except Exception as exc:
            log_event(logger, logging.ERROR, "crawl_background_run_failed", error=str(exc))

    def _default_storage(self, dry_run: bool) -> CrawlStorage:
        if dry_run:
            return DryRunCrawlStorage()
        if self._session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        return SQLAlchemyCrawlStorage(session_factory=self._session_factory)


@lru_cache(maxsize=1)
def get_crawl_service() -> CrawlService:
    """
    Build and cache the crawl service.
    """

    return CrawlService()
