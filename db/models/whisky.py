"""
db/models/whisky.py

Whisky catalog entry model with its latest pricing and rating snapshot.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class WhiskyRow(Base, TimestampMixin):
    __tablename__ = "whiskies"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
        comment="Source catalog id",
    )
    whisky_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
        comment="Display code, e.g. WB1",
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    distillery: Mapped[str | None] = mapped_column(Text, nullable=True)
    bottler: Mapped[str | None] = mapped_column(Text, nullable=True)
    bottling_series: Mapped[str | None] = mapped_column(Text, nullable=True)
    vintage: Mapped[str | None] = mapped_column(Text, nullable=True)
    bottled_date: Mapped[str | None] = mapped_column(Text, nullable=True)
    stated_age: Mapped[str | None] = mapped_column(Text, nullable=True)
    cask_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    strength: Mapped[float | None] = mapped_column(Float, nullable=True, comment="%vol")
    size: Mapped[str | None] = mapped_column(Text, nullable=True)
    barcode: Mapped[str | None] = mapped_column(Text, nullable=True)
    whisky_group_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uncolored: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    non_chillfiltered: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    cask_strength: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    number_of_bottles: Mapped[int | None] = mapped_column(Integer, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    market_value: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    market_value_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    market_value_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    retail_price: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)
    retail_price_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    retail_price_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True, comment="0-100")
    number_of_ratings: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_whiskies_distillery", "distillery"),
        Index("ix_whiskies_whisky_group_id", "whisky_group_id"),
    )
