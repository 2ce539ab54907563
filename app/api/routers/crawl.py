"""
app/api/routers/crawl.py

Crawl progress and run-trigger endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from app.crawler.engine import CrawlOptions
from app.schemas.crawl import CrawlProgressResponse, CrawlRunAcceptedResponse, CrawlRunRequest
from app.services.crawl_service import (
    CrawlAlreadyRunningError,
    CrawlService,
    FastAPIBackgroundTaskExecutor,
    get_crawl_service,
)

router = APIRouter(prefix="/crawl", tags=["crawl"])


@router.get("/progress", response_model=CrawlProgressResponse)
def get_crawl_progress(
    crawl_service: CrawlService = Depends(get_crawl_service),
) -> CrawlProgressResponse:
    """
    Return the persisted crawl checkpoint.
    """

    try:
        progress = crawl_service.get_progress()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Crawl progress is unavailable.",
        ) from exc

    return CrawlProgressResponse(
        last_processed_id=progress.last_processed_id,
        status=progress.status,
        error_message=progress.error_message,
        started_at=progress.started_at,
        completed_at=progress.completed_at,
        updated_at=progress.updated_at,
        run_active=crawl_service.is_running(),
    )


@router.post(
    "/runs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=CrawlRunAcceptedResponse,
)
def start_crawl_run(
    background_tasks: BackgroundTasks,
    request: CrawlRunRequest | None = None,
    crawl_service: CrawlService = Depends(get_crawl_service),
) -> CrawlRunAcceptedResponse:
    """
    Start a crawl run in the background. Only one run may be active at a time.
    """

    request = request or CrawlRunRequest()
    options = CrawlOptions(
        start_id=request.start_id,
        max_id=request.max_id,
        find_max_id=request.find_max_id,
        resume=request.resume,
        concurrency=request.concurrency,
        batch_size=request.batch_size,
        flush_interval_seconds=(
            request.flush_interval_ms / 1000 if request.flush_interval_ms else None
        ),
        dry_run=request.dry_run,
    )
    try:
        crawl_service.start_run(options, executor=FastAPIBackgroundTaskExecutor(background_tasks))
    except CrawlAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return CrawlRunAcceptedResponse(
        start_id=request.start_id,
        max_id=request.max_id,
        resume=request.resume,
        find_max_id=request.find_max_id,
        dry_run=request.dry_run,
    )
