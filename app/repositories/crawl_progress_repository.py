"""
app/repositories/crawl_progress_repository.py

Persistence layer for the single-row crawl checkpoint.
"""

from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from app.domain.crawl import CrawlProgress
from db.models.crawl_progress import PROGRESS_ROW_ID, CrawlProgressRow


class CrawlProgressRepository:
    """
    Reads and replaces the checkpoint row. Never commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self) -> CrawlProgress | None:
        row = self._session.get(CrawlProgressRow, PROGRESS_ROW_ID)
        if row is None:
            return None
        return CrawlProgress(
            last_processed_id=row.last_processed_id,
            status=row.status,
            error_message=row.error_message,
            started_at=row.started_at,
            completed_at=row.completed_at,
            updated_at=row.updated_at,
        )

    def save(self, progress: CrawlProgress) -> None:
        values = {
            "last_processed_id": progress.last_processed_id,
            "status": progress.status,
            "error_message": progress.error_message,
            "started_at": progress.started_at,
            "completed_at": progress.completed_at,
        }
        if progress.updated_at is not None:
            values["updated_at"] = progress.updated_at

        stmt = insert(CrawlProgressRow).values(id=PROGRESS_ROW_ID, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[CrawlProgressRow.id], set_=values)
        self._session.execute(stmt)
