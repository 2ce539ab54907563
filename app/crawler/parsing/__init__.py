"""
Page parsing exports.
"""

from app.crawler.parsing.whisky_parser import (
    WhiskyPageParser,
    looks_like_missing_page,
    parse_page_date,
    parse_strength,
)

__all__ = [
    "WhiskyPageParser",
    "looks_like_missing_page",
    "parse_page_date",
    "parse_strength",
]
