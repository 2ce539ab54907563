"""
app/domain package marker.
"""

from app.domain.catalog import PricingSnapshot, RatingSnapshot, WhiskyItem, WhiskyRecord
from app.domain.crawl import (
    CrawlProgress,
    CrawlRunSummary,
    ErrorKind,
    Outcome,
    OutcomeKind,
    ProgressStatus,
)

__all__ = [
    "CrawlProgress",
    "CrawlRunSummary",
    "ErrorKind",
    "Outcome",
    "OutcomeKind",
    "PricingSnapshot",
    "ProgressStatus",
    "RatingSnapshot",
    "WhiskyItem",
    "WhiskyRecord",
]
