"""
app/repositories package marker.
"""

from app.repositories.crawl_progress_repository import CrawlProgressRepository
from app.repositories.whisky_repository import WhiskyRepository

__all__ = [
    "CrawlProgressRepository",
    "WhiskyRepository",
]
