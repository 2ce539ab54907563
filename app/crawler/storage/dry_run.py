"""
Storage that records nothing, for dry runs.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

from app.crawler.storage.base import CrawlStorage
from app.domain.catalog import WhiskyRecord
from app.domain.crawl import CrawlProgress

logger = logging.getLogger(__name__)


class DryRunCrawlStorage(CrawlStorage):
    """
    Counts would-be writes and keeps progress in memory only.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._progress: CrawlProgress | None = None
        self.records_seen = 0

    def upsert_batch(self, records: Sequence[WhiskyRecord]) -> int:
        with self._lock:
            self.records_seen += len(records)
        logger.info(
            "Dry run: skipping upsert of %s record(s) (ids %s)",
            len(records),
            [record.record_id for record in records],
        )
        return len(records)

    def read_progress(self) -> CrawlProgress | None:
        with self._lock:
            return self._progress

    def write_progress(self, progress: CrawlProgress) -> None:
        with self._lock:
            self._progress = progress
