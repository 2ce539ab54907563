"""
Crawler exception hierarchy.
"""

from __future__ import annotations


class CrawlError(Exception):
    """Base exception for crawl pipeline failures."""


class ItemNotFoundError(CrawlError):
    """Raised when the source reports that an id has no entity."""

    def __init__(self, item_id: int) -> None:
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class TransientFetchError(CrawlError):
    """Raised for network failures and retryable HTTP statuses."""

    def __init__(self, item_id: int, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"Failed to fetch item {item_id}: {message}")
        self.item_id = item_id
        self.status_code = status_code


class ParseError(CrawlError):
    """Raised when a page exists but its payload cannot be interpreted."""


class PersistenceError(CrawlError):
    """Raised when a flush to storage fails."""


class BatchDrainError(PersistenceError):
    """Raised when the final drain had to drop records."""

    def __init__(self, dropped_records: int, dead_letter_path: str | None = None) -> None:
        message = f"{dropped_records} record(s) could not be persisted during the final drain"
        if dead_letter_path:
            message += f"; written to {dead_letter_path}"
        super().__init__(message)
        self.dropped_records = dropped_records
        self.dead_letter_path = dead_letter_path


class FatalCrawlError(CrawlError):
    """Raised when the run cannot continue."""


class ConsecutiveErrorLimitExceeded(FatalCrawlError):
    """Raised when too many ids failed in a row."""

    def __init__(self, consecutive_errors: int, limit: int, last_item_id: int) -> None:
        super().__init__(
            f"{consecutive_errors} consecutive errors (limit {limit}), last item id {last_item_id}"
        )
        self.consecutive_errors = consecutive_errors
        self.limit = limit
        self.last_item_id = last_item_id
