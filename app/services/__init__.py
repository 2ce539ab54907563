"""
app/services package marker.
"""

from app.services.crawl_service import (
    CrawlAlreadyRunningError,
    CrawlService,
    get_crawl_service,
)

__all__ = [
    "CrawlAlreadyRunningError",
    "CrawlService",
    "get_crawl_service",
]
