"""
Storage interface used by the crawl pipeline.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from app.domain.catalog import WhiskyRecord
from app.domain.crawl import CrawlProgress


class CrawlStorage(ABC):
    """
    Storage abstraction for whisky upserts and the progress checkpoint.

    Implementations are called from several threads at once.
    """

    @abstractmethod
    def upsert_batch(self, records: Sequence[WhiskyRecord]) -> int:
        """
        Insert or update records by id and return the affected row count.
        """

    @abstractmethod
    def read_progress(self) -> CrawlProgress | None:
        """
        Return the progress checkpoint, or None when none was stored yet.
        """

    @abstractmethod
    def write_progress(self, progress: CrawlProgress) -> None:
        """
        Store the progress checkpoint, replacing the previous one.
        """
