"""
Storage layer exports.
"""

from app.crawler.storage.base import CrawlStorage
from app.crawler.storage.dry_run import DryRunCrawlStorage
from app.crawler.storage.sqlalchemy_storage import SQLAlchemyCrawlStorage

__all__ = ["CrawlStorage", "DryRunCrawlStorage", "SQLAlchemyCrawlStorage"]
