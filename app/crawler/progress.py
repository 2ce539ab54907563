"""
Best-effort checkpointing of crawl progress.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone

from app.crawler.logging_utils import log_event
from app.crawler.storage.base import CrawlStorage
from app.domain.crawl import CrawlProgress, ProgressStatus

logger = logging.getLogger(__name__)

_FINISHED_STATUSES = {ProgressStatus.COMPLETED, ProgressStatus.ERROR}


class ProgressTracker:
    """
    Reads and writes the singleton progress row through a CrawlStorage.

    Writes never raise; a failed checkpoint is logged and the crawl continues.
    Writes are serialised, and a mid-run checkpoint older than the stored one
    is ignored so concurrent workers never move `last_processed_id` backwards.
    """

    def __init__(self, storage: CrawlStorage) -> None:
        self._storage = storage
        self._lock = threading.Lock()

    def read(self) -> CrawlProgress:
        progress = self._storage.read_progress()
        if progress is None:
            progress = CrawlProgress()
            self.write(progress.last_processed_id, progress.status)
        return progress

    def write(
        self,
        last_processed_id: int,
        status: str,
        error_message: str | None = None,
        *,
        run_started: bool = False,
    ) -> bool:
        with self._lock:
            return self._write_locked(last_processed_id, status, error_message, run_started)

    def _write_locked(
        self,
        last_processed_id: int,
        status: str,
        error_message: str | None,
        run_started: bool,
    ) -> bool:
        now = datetime.now(timezone.utc)
        try:
            current = self._storage.read_progress() or CrawlProgress()
            if (
                status == ProgressStatus.RUNNING
                and not run_started
                and current.status == ProgressStatus.RUNNING
                and last_processed_id < current.last_processed_id
            ):
                return True
            progress = replace(
                current,
                last_processed_id=last_processed_id,
                status=status,
                error_message=error_message,
                updated_at=now,
            )
            if status == ProgressStatus.RUNNING and (
                run_started or current.status != ProgressStatus.RUNNING
            ):
                progress = replace(progress, started_at=now, completed_at=None)
            elif status in _FINISHED_STATUSES:
                progress = replace(progress, completed_at=now)
            self._storage.write_progress(progress)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "progress_write_failed",
                last_processed_id=last_processed_id,
                status=status,
                error=str(exc),
            )
            return False
        return True
