"""
Catalog crawler: boundary search, worker pool, buffering, checkpoints.
"""

from app.crawler.engine import CrawlEngine, CrawlOptions

__all__ = ["CrawlEngine", "CrawlOptions"]
