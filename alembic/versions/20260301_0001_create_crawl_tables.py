"""create whiskies and whisky_crawl_progress tables

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "whiskies",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False, comment="Source catalog id"),
        sa.Column("whisky_id", sa.String(length=32), nullable=False, comment="Display code, e.g. WB1"),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("distillery", sa.Text(), nullable=True),
        sa.Column("bottler", sa.Text(), nullable=True),
        sa.Column("bottling_series", sa.Text(), nullable=True),
        sa.Column("vintage", sa.Text(), nullable=True),
        sa.Column("bottled_date", sa.Text(), nullable=True),
        sa.Column("stated_age", sa.Text(), nullable=True),
        sa.Column("cask_type", sa.Text(), nullable=True),
        sa.Column("strength", sa.Float(), nullable=True, comment="%vol"),
        sa.Column("size", sa.Text(), nullable=True),
        sa.Column("barcode", sa.Text(), nullable=True),
        sa.Column("whisky_group_id", sa.Integer(), nullable=True),
        sa.Column("uncolored", sa.Boolean(), nullable=True),
        sa.Column("non_chillfiltered", sa.Boolean(), nullable=True),
        sa.Column("cask_strength", sa.Boolean(), nullable=True),
        sa.Column("number_of_bottles", sa.Integer(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("market_value", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("market_value_currency", sa.String(length=3), nullable=True),
        sa.Column("market_value_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retail_price", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("retail_price_currency", sa.String(length=3), nullable=True),
        sa.Column("retail_price_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("average_rating", sa.Float(), nullable=True, comment="0-100"),
        sa.Column("number_of_ratings", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_whiskies"),
        sa.UniqueConstraint("whisky_id", name="uq_whiskies_whisky_id"),
    )
    op.create_index("ix_whiskies_distillery", "whiskies", ["distillery"], unique=False)
    op.create_index("ix_whiskies_whisky_group_id", "whiskies", ["whisky_group_id"], unique=False)

    op.create_table(
        "whisky_crawl_progress",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_processed_id", sa.Integer(), server_default="0", nullable=False),
        sa.Column(
            "status",
            sa.String(length=32),
            server_default="idle",
            nullable=False,
            comment="idle, running, completed, error",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_whisky_crawl_progress_singleton"),
        sa.PrimaryKeyConstraint("id", name="pk_whisky_crawl_progress"),
    )


def downgrade() -> None:
    op.drop_table("whisky_crawl_progress")
    op.drop_index("ix_whiskies_whisky_group_id", table_name="whiskies")
    op.drop_index("ix_whiskies_distillery", table_name="whiskies")
    op.drop_table("whiskies")
