"""
BeautifulSoup-based parser for whisky catalog pages.

Catalog pages embed the entity as JSON in a `:whisky` (or `:bottle`) component
attribute. The parser reads that payload first and falls back to visible page
text for pricing and rating.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup

from app.crawler.errors import ItemNotFoundError, ParseError
from app.domain.catalog import PricingSnapshot, RatingSnapshot, WhiskyItem, WhiskyRecord

logger = logging.getLogger(__name__)

PAYLOAD_ATTRIBUTES = (":whisky", ":bottle")
DISTILLERY_BOTTLING = "Distillery Bottling"
DEFAULT_CURRENCY = "EUR"

MISSING_PAGE_REGEX = re.compile(r"404|not found|page not found", flags=re.IGNORECASE)
WHISKY_CODE_REGEX = re.compile(r"WB\d+")
MONTH_DATE_REGEX = re.compile(
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+(\d{1,2}),\s+(\d{4})"
)
ISO_DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
RETAIL_PRICE_TEXT_REGEX = re.compile(
    r"Retail Price[\s\S]{0,200}?(€[\d,.]+)[\s\S]{0,200}?"
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+(\d{1,2}),\s+(\d{4})"
)
MARKET_VALUE_TEXT_REGEX = re.compile(r"Market Value[\s\S]{0,200}?(€[\d,.]+)")
RATING_TEXT_REGEX = re.compile(r"(\d+)/100")
RATING_COUNT_TEXT_REGEX = re.compile(r"Ratings\s+(\d+)")

MONTHS = {
    "Jan": 1,
    "Feb": 2,
    "Mar": 3,
    "Apr": 4,
    "May": 5,
    "Jun": 6,
    "Jul": 7,
    "Aug": 8,
    "Sep": 9,
    "Oct": 10,
    "Nov": 11,
    "Dec": 12,
}


def has_payload_attribute(html: str) -> bool:
    return any(f'{attribute}="' in html for attribute in PAYLOAD_ATTRIBUTES)


def looks_like_missing_page(html: str) -> bool:
    """
    Heuristic for "no entity at this id" pages served with a 2xx status.

    A page with an embedded payload is never missing. Otherwise it is missing
    when it mentions 404/not found or carries no `WB<digits>` code at all.
    """

    if has_payload_attribute(html):
        return False
    return bool(MISSING_PAGE_REGEX.search(html)) or not WHISKY_CODE_REGEX.search(html)


class WhiskyPageParser:
    """
    Deterministic mapping from page HTML to a WhiskyRecord.
    """

    @classmethod
    def parse(cls, html: str, item_id: int) -> WhiskyRecord | None:
        """
        Return the record for `item_id`, or None when the page has no payload.

        Raises ItemNotFoundError for missing-entity pages and ParseError when
        the embedded payload is not a JSON object.
        """

        soup = BeautifulSoup(html, "html.parser")
        payload = cls.extract_payload(soup)
        if payload is None:
            if looks_like_missing_page(html):
                raise ItemNotFoundError(item_id)
            return None

        payload_id = payload.get("wbid", payload.get("id"))
        if isinstance(payload_id, int) and payload_id != item_id:
            logger.warning(
                "Whisky id mismatch: expected %s, payload has %s; keeping %s",
                item_id,
                payload_id,
                item_id,
            )

        item = cls.extract_item(soup=soup, payload=payload, item_id=item_id)
        pricing = cls.extract_pricing(html=html, payload=payload)
        rating = cls.extract_rating(html=html, payload=payload)
        return WhiskyRecord(item=item, pricing=pricing, rating=rating)

    @staticmethod
    def extract_payload(soup: BeautifulSoup) -> dict[str, Any] | None:
        for attribute in PAYLOAD_ATTRIBUTES:
            node = soup.find(attrs={attribute: True})
            if node is None:
                continue
            raw = node.get(attribute)
            if isinstance(raw, list):
                raw = " ".join(raw)
            try:
                payload = json.loads(raw or "")
            except json.JSONDecodeError as exc:
                raise ParseError(f"Invalid JSON in {attribute} attribute: {exc}") from exc
            if not isinstance(payload, dict):
                raise ParseError(f"Expected a JSON object in {attribute} attribute.")
            return payload
        return None

    @classmethod
    def extract_item(
        cls,
        *,
        soup: BeautifulSoup,
        payload: dict[str, Any],
        item_id: int,
    ) -> WhiskyItem:
        name = _as_str(payload.get("name"))
        if name is None:
            heading = soup.find("h1")
            name = heading.get_text(strip=True) if heading is not None else ""

        age = payload.get("age")
        stated_age = str(age) if _is_number(age) else _as_str(payload.get("stated_age"))

        bottle_size = payload.get("bottle_size")
        size = str(bottle_size) if _is_number(bottle_size) else _as_str(bottle_size)

        mapping = _as_dict(payload.get("mapping"))
        group_id = _as_int(mapping.get("bbid"))

        return WhiskyItem(
            id=item_id,
            whisky_id=f"WB{item_id}",
            name=name,
            category=_nested_name(payload.get("type")),
            distillery=cls._first_distillery(payload),
            bottler=cls._bottler(payload),
            bottling_series=_nested_name(payload.get("serie")),
            vintage=_as_str(payload.get("vintage")),
            bottled_date=_as_str(payload.get("bottle_date")),
            stated_age=stated_age,
            cask_type=_as_str(payload.get("cask_type")),
            strength=parse_strength(payload.get("strength")),
            size=size,
            barcode=_as_str(payload.get("barcode")),
            whisky_group_id=group_id,
            uncolored=_as_bool(payload.get("uncolored")),
            non_chillfiltered=_as_bool(payload.get("non_chillfiltered")),
            cask_strength=_as_bool(payload.get("cask_strength")),
            number_of_bottles=_as_int(payload.get("number_of_bottles")),
            image_url=cls._image_url(soup=soup, payload=payload),
        )

    @classmethod
    def extract_pricing(cls, *, html: str, payload: dict[str, Any]) -> PricingSnapshot | None:
        bottle = _as_dict(payload.get("bottle")) or payload
        fields: dict[str, Any] = {}

        retail_price = _to_float(bottle.get("asking_price"))
        if retail_price is not None:
            fields["retail_price"] = retail_price
            fields["retail_price_currency"] = DEFAULT_CURRENCY
            fields["retail_price_date"] = parse_page_date(bottle.get("asking_price_date"))

        market_date = bottle.get("market_value_date")
        stats_id = bottle.get("market_value_stats_id")
        if stats_id is not None and market_date is not None:
            localized = _as_dict(bottle.get("localized_prices")) or _as_dict(
                payload.get("localized_prices")
            )
            market_value = _to_float(localized.get(str(stats_id)))
            if market_value is not None:
                fields["market_value"] = market_value
                fields["market_value_currency"] = DEFAULT_CURRENCY
                fields["market_value_date"] = parse_page_date(market_date)

        if "market_value" not in fields:
            market_value = _to_float(bottle.get("market_value"))
            if market_value is not None:
                fields["market_value"] = market_value
                fields["market_value_currency"] = DEFAULT_CURRENCY
                fields["market_value_date"] = parse_page_date(market_date)

        if "retail_price" not in fields:
            match = RETAIL_PRICE_TEXT_REGEX.search(html)
            if match:
                price = _to_float(match.group(1))
                if price is not None:
                    fields["retail_price"] = price
                    fields["retail_price_currency"] = DEFAULT_CURRENCY
                    fields["retail_price_date"] = _month_date(
                        match.group(2), match.group(3), match.group(4)
                    )

        if "market_value" not in fields:
            match = MARKET_VALUE_TEXT_REGEX.search(html)
            if match:
                value = _to_float(match.group(1))
                if value is not None:
                    fields["market_value"] = value
                    fields["market_value_currency"] = DEFAULT_CURRENCY
                    fields["market_value_date"] = datetime.now(timezone.utc)

        if not fields:
            return None
        return PricingSnapshot(**fields)

    @staticmethod
    def extract_rating(*, html: str, payload: dict[str, Any]) -> RatingSnapshot | None:
        average_rating = _to_float(payload.get("rating"))
        number_of_ratings = _as_int(payload.get("votes"))

        if average_rating is None:
            match = RATING_TEXT_REGEX.search(html)
            if match:
                average_rating = float(match.group(1))
                count_match = RATING_COUNT_TEXT_REGEX.search(html)
                if count_match:
                    number_of_ratings = int(count_match.group(1))

        if average_rating is None and number_of_ratings is None:
            return None
        return RatingSnapshot(average_rating=average_rating, number_of_ratings=number_of_ratings)

    @staticmethod
    def _first_distillery(payload: dict[str, Any]) -> str | None:
        distilleries = payload.get("distilleries")
        if isinstance(distilleries, list) and distilleries:
            return _nested_name(distilleries[0])
        return None

    @staticmethod
    def _bottler(payload: dict[str, Any]) -> str | None:
        bottle = _as_dict(payload.get("bottle"))
        if bottle.get("original_bottling") is True:
            return DISTILLERY_BOTTLING

        basket = _as_dict(_as_dict(payload.get("mapping")).get("basket"))
        return (
            _as_str(basket.get("bottler"))
            or _nested_name(payload.get("bottler"))
            or _as_str(payload.get("simple_bottler"))
        )

    @staticmethod
    def _image_url(*, soup: BeautifulSoup, payload: dict[str, Any]) -> str | None:
        photos = payload.get("photos")
        if isinstance(photos, list) and photos:
            url = _as_str(_as_dict(photos[0]).get("normal"))
            if url:
                return url

        bottle = _as_dict(payload.get("bottle"))
        url = _as_str(_as_dict(bottle.get("alternative_whisky_image")).get("normal"))
        if url:
            return url

        image = soup.select_one('img[alt*="bottle"], img[alt*="Bottle"]')
        if image is not None:
            src = image.get("src")
            return src if isinstance(src, str) and src else None
        return None


def parse_strength(value: Any) -> float | None:
    """
    Parse strengths such as `"46,0 %vol"` into 46.0.
    """

    if _is_number(value):
        return float(value)
    text = _as_str(value)
    if text is None:
        return None
    cleaned = text.replace("%vol", "").replace("%", "").replace(",", ".").strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_page_date(value: Any) -> datetime | None:
    """
    Parse `"Dec 21, 2025"` or `"2025-12-21"` into a UTC datetime.
    """

    text = _as_str(value)
    if text is None:
        return None
    text = text.strip()
    if "," in text:
        match = MONTH_DATE_REGEX.search(text)
        if match:
            return _month_date(match.group(1), match.group(2), match.group(3))
        return None
    if ISO_DATE_REGEX.match(text):
        try:
            return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None


def _month_date(month: str, day: str, year: str) -> datetime | None:
    try:
        return datetime(int(year), MONTHS[month], int(day), tzinfo=timezone.utc)
    except (KeyError, ValueError):
        return None


def _to_float(value: Any) -> float | None:
    if _is_number(value):
        return float(value)
    text = _as_str(value)
    if text is None:
        return None
    cleaned = text.replace("€", "").replace(" ", "").strip()
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value in (0, 1):
        return bool(value)
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _nested_name(value: Any) -> str | None:
    return _as_str(_as_dict(value).get("name"))
