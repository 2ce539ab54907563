"""
Fetch-and-parse facade used by the worker pool and boundary search.
"""

from __future__ import annotations

from app.crawler.errors import ItemNotFoundError
from app.crawler.fetcher import WhiskyPageFetcher
from app.crawler.parsing.whisky_parser import WhiskyPageParser, looks_like_missing_page
from app.domain.catalog import WhiskyRecord


class WhiskyScraper:
    """
    Combines a page fetcher with the whisky page parser.
    """

    def __init__(
        self,
        *,
        fetcher: WhiskyPageFetcher,
        parser: type[WhiskyPageParser] = WhiskyPageParser,
    ) -> None:
        self._fetcher = fetcher
        self._parser = parser

    def scrape(self, item_id: int) -> WhiskyRecord | None:
        html = self._fetcher.fetch(item_id)
        return self._parser.parse(html, item_id)

    def probe(self, item_id: int) -> None:
        """
        Raise ItemNotFoundError when `item_id` has no entity; return otherwise.
        """

        html = self._fetcher.fetch(item_id)
        if looks_like_missing_page(html):
            raise ItemNotFoundError(item_id)
