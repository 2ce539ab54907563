"""
app/repositories/whisky_repository.py

Persistence layer for crawled whisky records.

The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.orm import Session

from app.domain.catalog import WhiskyRecord
from db.models.whisky import WhiskyRow

_DEFAULT_BATCH_SIZE = 500
_IMMUTABLE_COLUMNS = {"id", "created_at"}


def record_to_payload(record: WhiskyRecord) -> dict[str, Any]:
    """
    Flatten a WhiskyRecord into a `whiskies` row payload.
    """

    item = record.item
    pricing = record.pricing
    rating = record.rating
    return {
        "id": item.id,
        "whisky_id": item.whisky_id,
        "name": item.name,
        "category": item.category,
        "distillery": item.distillery,
        "bottler": item.bottler,
        "bottling_series": item.bottling_series,
        "vintage": item.vintage,
        "bottled_date": item.bottled_date,
        "stated_age": item.stated_age,
        "cask_type": item.cask_type,
        "strength": item.strength,
        "size": item.size,
        "barcode": item.barcode,
        "whisky_group_id": item.whisky_group_id,
        "uncolored": item.uncolored,
        "non_chillfiltered": item.non_chillfiltered,
        "cask_strength": item.cask_strength,
        "number_of_bottles": item.number_of_bottles,
        "image_url": item.image_url,
        "market_value": pricing.market_value if pricing else None,
        "market_value_currency": pricing.market_value_currency if pricing else None,
        "market_value_date": pricing.market_value_date if pricing else None,
        "retail_price": pricing.retail_price if pricing else None,
        "retail_price_currency": pricing.retail_price_currency if pricing else None,
        "retail_price_date": pricing.retail_price_date if pricing else None,
        "average_rating": rating.average_rating if rating else None,
        "number_of_ratings": rating.number_of_ratings if rating else None,
    }


class WhiskyRepository:
    """
    Repository for idempotent whisky upserts keyed by source id.

    Upsert semantics: a row whose `id` already exists has every column
    replaced by the incoming values and `updated_at` refreshed.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert_many(
        self,
        records: Sequence[WhiskyRecord],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        if not records:
            return 0

        payloads = self._deduplicate_payloads([record_to_payload(record) for record in records])
        size = max(1, batch_size)
        affected = 0
        for start in range(0, len(payloads), size):
            chunk = payloads[start : start + size]
            result = self._session.execute(self.build_upsert_statement(chunk))
            affected += result.rowcount if result.rowcount and result.rowcount > 0 else len(chunk)
        return affected

    @staticmethod
    def build_upsert_statement(payloads: Sequence[dict[str, Any]]) -> Insert:
        stmt = insert(WhiskyRow).values(list(payloads))
        update_columns = {
            column.name: stmt.excluded[column.name]
            for column in WhiskyRow.__table__.columns
            if column.name not in _IMMUTABLE_COLUMNS and column.name != "updated_at"
        }
        update_columns["updated_at"] = func.now()
        return stmt.on_conflict_do_update(index_elements=[WhiskyRow.id], set_=update_columns)

    def get(self, whisky_id: int) -> WhiskyRow | None:
        return self._session.get(WhiskyRow, whisky_id)

    def count(self) -> int:
        return int(self._session.scalar(select(func.count()).select_from(WhiskyRow)) or 0)

    def _deduplicate_payloads(
        self,
        payloads: Sequence[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        # Later payloads win; one INSERT cannot touch the same row twice.
        latest: dict[int, dict[str, Any]] = {}
        for payload in payloads:
            latest.pop(payload["id"], None)
            latest[payload["id"]] = payload
        return list(latest.values())
