"""
Catalog crawl engine.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from dataclasses import dataclass

from app.config import CrawlSettings
from app.crawler.batch_buffer import BatchBuffer, DrainResult
from app.crawler.boundary import BoundaryFinder
from app.crawler.dead_letter import DeadLetterSink
from app.crawler.errors import BatchDrainError, FatalCrawlError
from app.crawler.logging_utils import log_event
from app.crawler.progress import ProgressTracker
from app.crawler.scraper import WhiskyScraper
from app.crawler.storage.base import CrawlStorage
from app.crawler.termination import TerminationCriteria
from app.crawler.worker_pool import PoolStopReason, WorkerPool
from app.domain.crawl import CrawlRunSummary, ProgressStatus

logger = logging.getLogger(__name__)


class RunStopReason:
    NO_DATA = "no_data"
    NOTHING_TO_CRAWL = "nothing_to_crawl"


@dataclass(frozen=True)
class CrawlOptions:
    """
    Per-run overrides on top of CrawlSettings.
    """

    start_id: int = 1
    max_id: int | None = None
    find_max_id: bool = False
    resume: bool = False
    concurrency: int | None = None
    batch_size: int | None = None
    flush_interval_seconds: float | None = None
    dry_run: bool = False


class CrawlEngine:
    """
    Orchestrates boundary search, the worker pool, buffering and checkpoints.
    """

    def __init__(
        self,
        *,
        settings: CrawlSettings,
        storage: CrawlStorage,
        scraper: WhiskyScraper,
        dead_letter: DeadLetterSink | None = None,
        buffer_executor: Executor | None = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._scraper = scraper
        self._dead_letter = dead_letter
        self._buffer_executor = buffer_executor
        self._progress = ProgressTracker(storage)
        self._criteria = TerminationCriteria(
            min_consecutive_not_found=settings.min_consecutive_not_found,
            window_size=settings.window_size,
            min_not_found_rate=settings.min_not_found_rate,
        )

        self._lock = threading.Lock()
        self._stop_requested = False
        self._pool: WorkerPool | None = None

    def request_stop(self) -> None:
        """
        Ask the running crawl to stop after its in-flight ids.
        """

        with self._lock:
            self._stop_requested = True
            pool = self._pool
        if pool is not None:
            pool.request_stop()
        log_event(logger, logging.WARNING, "crawl_stop_requested")

    def run(self, options: CrawlOptions | None = None) -> CrawlRunSummary:
        options = options or CrawlOptions()
        if options.start_id < 1:
            raise ValueError("start_id must be at least 1.")

        progress = self._progress.read()
        start_id = progress.last_processed_id + 1 if options.resume else options.start_id
        max_id = options.max_id
        log_event(
            logger,
            logging.INFO,
            "crawl_started",
            start_id=start_id,
            max_id=max_id,
            resume=options.resume,
            find_max_id=options.find_max_id,
            dry_run=options.dry_run,
        )

        if options.find_max_id and max_id is None:
            finder = BoundaryFinder(
                probe=self._scraper.probe,
                criteria=self._criteria,
                safety_limit=self._settings.boundary_safety_limit,
                max_consecutive_errors=self._settings.max_consecutive_errors,
            )
            try:
                boundary = finder.search(start_id)
            except FatalCrawlError as exc:
                self._progress.write(progress.last_processed_id, ProgressStatus.ERROR, str(exc))
                log_event(logger, logging.ERROR, "crawl_failed", phase="boundary", error=str(exc))
                raise
            if not boundary.found_any:
                self._progress.write(start_id - 1, ProgressStatus.COMPLETED)
                return self._empty_summary(start_id, None, RunStopReason.NO_DATA, options)
            max_id = boundary.max_id

        if max_id is not None and max_id < start_id:
            self._progress.write(start_id - 1, ProgressStatus.COMPLETED)
            return self._empty_summary(start_id, max_id, RunStopReason.NOTHING_TO_CRAWL, options)

        self._progress.write(start_id - 1, ProgressStatus.RUNNING, run_started=True)

        buffer = BatchBuffer(
            persist=self._storage.upsert_batch,
            batch_size=options.batch_size or self._settings.batch_size,
            chunk_size=self._settings.chunk_size,
            dead_letter=self._dead_letter,
            executor=self._buffer_executor,
        )
        buffer.start_auto_flush(
            options.flush_interval_seconds or self._settings.flush_interval_seconds
        )
        pool = WorkerPool(
            scrape=self._scraper.scrape,
            sink=buffer.add,
            criteria=self._criteria,
            concurrency=options.concurrency or self._settings.concurrency,
            max_consecutive_errors=self._settings.max_consecutive_errors,
            progress=self._progress,
            progress_interval=self._settings.progress_interval,
            estimated_max_id=self._settings.estimated_max_id,
        )
        with self._lock:
            self._pool = pool
            if self._stop_requested:
                pool.request_stop()

        try:
            result = pool.run(start_id, max_id)
        except Exception as exc:
            self._drain(buffer)
            self._progress.write(pool.watermark, ProgressStatus.ERROR, str(exc))
            log_event(
                logger,
                logging.ERROR,
                "crawl_failed",
                phase="crawl",
                watermark=pool.watermark,
                error=str(exc),
            )
            raise
        finally:
            with self._lock:
                self._pool = None

        drain = self._drain(buffer)
        if drain.dropped:
            error = BatchDrainError(
                drain.dropped,
                str(self._dead_letter.path) if self._dead_letter and drain.dead_lettered else None,
            )
            self._progress.write(result.watermark, ProgressStatus.ERROR, str(error))
            log_event(logger, logging.ERROR, "crawl_failed", phase="drain", error=str(error))
            raise error

        if result.stop_reason == PoolStopReason.STOP_REQUESTED:
            status = ProgressStatus.IDLE
            last_processed_id = result.watermark
        else:
            status = ProgressStatus.COMPLETED
            last_processed_id = result.final_processed_id
        self._progress.write(last_processed_id, status)

        summary = CrawlRunSummary(
            start_id=start_id,
            max_id=max_id,
            last_processed_id=last_processed_id,
            processed=result.processed,
            found=result.found,
            not_found=result.not_found,
            errors=result.errors,
            records_buffered=result.records_buffered,
            records_persisted=buffer.stats.records_saved,
            status=status,
            stop_reason=result.stop_reason,
            dry_run=options.dry_run,
        )
        log_event(
            logger,
            logging.INFO,
            "crawl_completed",
            status=summary.status,
            stop_reason=summary.stop_reason,
            last_processed_id=summary.last_processed_id,
            processed=summary.processed,
            found=summary.found,
            records_persisted=summary.records_persisted,
        )
        return summary

    def _drain(self, buffer: BatchBuffer) -> DrainResult:
        try:
            return buffer.flush_all()
        finally:
            buffer.close()

    @staticmethod
    def _empty_summary(
        start_id: int,
        max_id: int | None,
        stop_reason: str,
        options: CrawlOptions,
    ) -> CrawlRunSummary:
        log_event(
            logger,
            logging.INFO,
            "crawl_completed",
            status=ProgressStatus.COMPLETED,
            stop_reason=stop_reason,
        )
        return CrawlRunSummary(
            start_id=start_id,
            max_id=max_id,
            last_processed_id=start_id - 1,
            processed=0,
            found=0,
            not_found=0,
            errors=0,
            records_buffered=0,
            records_persisted=0,
            status=ProgressStatus.COMPLETED,
            stop_reason=stop_reason,
            dry_run=options.dry_run,
        )
