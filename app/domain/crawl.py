"""
app/domain/crawl.py

Domain models for crawl outcomes, checkpoints and run summaries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from app.domain.catalog import WhiskyRecord


class OutcomeKind:
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ErrorKind:
    TRANSIENT = "transient"
    PARSE = "parse"
    UNEXPECTED = "unexpected"


class ProgressStatus:
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    """
    Classified result of probing or scraping one id.

    A `found` outcome may carry no record when the page exists but has no
    usable payload.
    """

    item_id: int
    kind: str
    record: WhiskyRecord | None = None
    error_kind: str | None = None
    error: str | None = None

    @classmethod
    def found(cls, item_id: int, record: WhiskyRecord | None = None) -> Outcome:
        return cls(item_id=item_id, kind=OutcomeKind.FOUND, record=record)

    @classmethod
    def not_found(cls, item_id: int) -> Outcome:
        return cls(item_id=item_id, kind=OutcomeKind.NOT_FOUND)

    @classmethod
    def failed(cls, item_id: int, error_kind: str, message: str) -> Outcome:
        return cls(
            item_id=item_id,
            kind=OutcomeKind.ERROR,
            error_kind=error_kind,
            error=message,
        )

    @property
    def is_found(self) -> bool:
        return self.kind == OutcomeKind.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.kind == OutcomeKind.NOT_FOUND

    @property
    def is_error(self) -> bool:
        return self.kind == OutcomeKind.ERROR


@dataclass(frozen=True)
class CrawlProgress:
    """
    Singleton checkpoint used to resume a later run.
    """

    last_processed_id: int = 0
    status: str = ProgressStatus.IDLE
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CrawlRunSummary:
    """
    End-of-run crawl summary.
    """

    start_id: int
    max_id: int | None
    last_processed_id: int
    processed: int
    found: int
    not_found: int
    errors: int
    records_buffered: int
    records_persisted: int
    status: str
    stop_reason: str
    dry_run: bool = False
