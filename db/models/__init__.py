"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.crawl_progress import CrawlProgressRow
from db.models.whisky import WhiskyRow

__all__ = [
    "CrawlProgressRow",
    "WhiskyRow",
]
