"""
app/domain/catalog.py

Domain models for whisky catalog entries produced by the page parser.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WhiskyItem:
    """
    Descriptive fields of one catalog entry.
    """

    id: int
    whisky_id: str
    name: str
    category: str | None = None
    distillery: str | None = None
    bottler: str | None = None
    bottling_series: str | None = None
    vintage: str | None = None
    bottled_date: str | None = None
    stated_age: str | None = None
    cask_type: str | None = None
    strength: float | None = None
    size: str | None = None
    barcode: str | None = None
    whisky_group_id: int | None = None
    uncolored: bool | None = None
    non_chillfiltered: bool | None = None
    cask_strength: bool | None = None
    number_of_bottles: int | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class PricingSnapshot:
    """
    Market and retail price observed on the page at scrape time.
    """

    market_value: float | None = None
    market_value_currency: str | None = None
    market_value_date: datetime | None = None
    retail_price: float | None = None
    retail_price_currency: str | None = None
    retail_price_date: datetime | None = None

    def is_empty(self) -> bool:
        return self.market_value is None and self.retail_price is None


@dataclass(frozen=True)
class RatingSnapshot:
    """
    Community rating observed on the page at scrape time.
    """

    average_rating: float | None = None
    number_of_ratings: int | None = None

    def is_empty(self) -> bool:
        return self.average_rating is None and self.number_of_ratings is None


@dataclass(frozen=True)
class WhiskyRecord:
    """
    One parsed catalog page, keyed by its source id.
    """

    item: WhiskyItem
    pricing: PricingSnapshot | None = None
    rating: RatingSnapshot | None = None

    @property
    def record_id(self) -> int:
        return self.item.id
