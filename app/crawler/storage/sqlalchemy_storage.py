"""
SQLAlchemy-backed storage implementation for crawled whiskies.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.crawler.storage.base import CrawlStorage
from app.domain.catalog import WhiskyRecord
from app.domain.crawl import CrawlProgress
from app.repositories.crawl_progress_repository import CrawlProgressRepository
from app.repositories.whisky_repository import WhiskyRepository


class SQLAlchemyCrawlStorage(CrawlStorage):
    """
    Persist whiskies and progress through repositories, one session per call.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def upsert_batch(self, records: Sequence[WhiskyRecord]) -> int:
        if not records:
            return 0

        session = self._session_factory()
        try:
            affected = WhiskyRepository(session).upsert_many(records)
            session.commit()
            return affected
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def read_progress(self) -> CrawlProgress | None:
        session = self._session_factory()
        try:
            return CrawlProgressRepository(session).get()
        finally:
            session.close()

    def write_progress(self, progress: CrawlProgress) -> None:
        session = self._session_factory()
        try:
            CrawlProgressRepository(session).save(progress)
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()
