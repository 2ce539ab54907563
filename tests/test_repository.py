"""
tests/test_repository.py

Upsert statement shape and session handling for the SQLAlchemy storage.
No database connection is opened; statements are compiled for PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from app.crawler.storage import DryRunCrawlStorage, SQLAlchemyCrawlStorage
from app.domain.catalog import PricingSnapshot, RatingSnapshot, WhiskyRecord
from app.domain.crawl import CrawlProgress, ProgressStatus
from app.repositories import CrawlProgressRepository, WhiskyRepository
from app.repositories.whisky_repository import record_to_payload
from tests.fakes import make_record


def _sql(statement: Any) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class _Result:
    rowcount = -1


class RecordingSession:
    """Session double that captures executed statements."""

    def __init__(self, *, fail_on_execute: bool = False) -> None:
        self.statements: list[Any] = []
        self.fail_on_execute = fail_on_execute
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def execute(self, statement: Any) -> _Result:
        if self.fail_on_execute:
            raise OperationalError("INSERT", {}, Exception("connection lost"))
        self.statements.append(statement)
        return _Result()

    def get(self, *_args: Any) -> None:
        return None

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Payload mapping
# ---------------------------------------------------------------------------


class TestRecordToPayload:
    def test_flattens_pricing_and_rating(self) -> None:
        record = WhiskyRecord(
            item=make_record(5, distillery="Ardbeg").item,
            pricing=PricingSnapshot(retail_price=45.0, retail_price_currency="EUR"),
            rating=RatingSnapshot(average_rating=88.0, number_of_ratings=3),
        )

        payload = record_to_payload(record)

        assert payload["id"] == 5
        assert payload["whisky_id"] == "WB5"
        assert payload["distillery"] == "Ardbeg"
        assert payload["retail_price"] == 45.0
        assert payload["market_value"] is None
        assert payload["average_rating"] == 88.0

    def test_missing_snapshots_become_nulls(self) -> None:
        payload = record_to_payload(make_record(6))
        assert payload["retail_price"] is None
        assert payload["number_of_ratings"] is None


# ---------------------------------------------------------------------------
# Whisky upserts
# ---------------------------------------------------------------------------


class TestWhiskyRepository:
    def test_upsert_statement_updates_on_id_conflict(self) -> None:
        payloads = [record_to_payload(make_record(1))]
        sql = _sql(WhiskyRepository.build_upsert_statement(payloads))

        assert "INSERT INTO whiskies" in sql
        assert "ON CONFLICT (id) DO UPDATE SET" in sql
        assert "updated_at = now()" in sql
        assert "name = excluded.name" in sql
        assert "created_at = excluded.created_at" not in sql

    def test_duplicate_ids_keep_the_last_payload(self) -> None:
        session = RecordingSession()
        records = [make_record(1, name="old"), make_record(2), make_record(1, name="new")]

        affected = WhiskyRepository(session).upsert_many(records)

        assert affected == 2
        params = session.statements[0].compile(dialect=postgresql.dialect()).params
        assert "new" in params.values()
        assert "old" not in params.values()

    def test_large_inputs_are_chunked(self) -> None:
        session = RecordingSession()
        records = [make_record(i) for i in range(1, 12)]

        WhiskyRepository(session).upsert_many(records, batch_size=5)

        assert len(session.statements) == 3

    def test_empty_input_executes_nothing(self) -> None:
        session = RecordingSession()
        assert WhiskyRepository(session).upsert_many([]) == 0
        assert session.statements == []


# ---------------------------------------------------------------------------
# Progress row
# ---------------------------------------------------------------------------


class TestCrawlProgressRepository:
    def test_save_upserts_singleton_row(self) -> None:
        session = RecordingSession()
        progress = CrawlProgress(
            last_processed_id=120,
            status=ProgressStatus.RUNNING,
            updated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

        CrawlProgressRepository(session).save(progress)

        sql = _sql(session.statements[0])
        assert "INSERT INTO whisky_crawl_progress" in sql
        assert "ON CONFLICT (id) DO UPDATE SET" in sql
        assert "last_processed_id = " in sql

    def test_get_returns_none_without_row(self) -> None:
        assert CrawlProgressRepository(RecordingSession()).get() is None


# ---------------------------------------------------------------------------
# Storage implementations
# ---------------------------------------------------------------------------


class TestSQLAlchemyCrawlStorage:
    def test_upsert_commits_and_closes(self) -> None:
        session = RecordingSession()
        storage = SQLAlchemyCrawlStorage(session_factory=lambda: session)

        assert storage.upsert_batch([make_record(1), make_record(2)]) == 2
        assert session.committed
        assert session.closed

    def test_batch_is_one_statement_in_one_session(self) -> None:
        sessions: list[RecordingSession] = []

        def factory() -> RecordingSession:
            sessions.append(RecordingSession())
            return sessions[-1]

        storage = SQLAlchemyCrawlStorage(session_factory=factory)

        assert storage.upsert_batch([make_record(item_id) for item_id in range(1, 121)]) == 120
        assert len(sessions) == 1
        assert len(sessions[0].statements) == 1
        assert sessions[0].committed

    def test_database_error_rolls_back_and_propagates(self) -> None:
        session = RecordingSession(fail_on_execute=True)
        storage = SQLAlchemyCrawlStorage(session_factory=lambda: session)

        with pytest.raises(OperationalError):
            storage.upsert_batch([make_record(1)])

        assert session.rolled_back
        assert not session.committed
        assert session.closed

    def test_progress_write_commits(self) -> None:
        session = RecordingSession()
        storage = SQLAlchemyCrawlStorage(session_factory=lambda: session)

        storage.write_progress(CrawlProgress(last_processed_id=3))

        assert session.committed
        assert storage.read_progress() is None


class TestDryRunCrawlStorage:
    def test_counts_records_without_persisting(self) -> None:
        storage = DryRunCrawlStorage()

        assert storage.upsert_batch([make_record(1), make_record(2)]) == 2
        assert storage.records_seen == 2

        storage.write_progress(CrawlProgress(last_processed_id=2))
        assert storage.read_progress().last_processed_id == 2
