"""
app/schemas/crawl.py

Request and response schemas for crawl endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class CrawlRunRequest(BaseModel):
    """
    Parameters for starting a crawl run.
    """

    start_id: int = Field(default=1, ge=1)
    max_id: int | None = Field(default=None, ge=1)
    find_max_id: bool = False
    resume: bool = False
    concurrency: int | None = Field(default=None, ge=1, le=100)
    batch_size: int | None = Field(default=None, ge=1)
    flush_interval_ms: int | None = Field(default=None, ge=100)
    dry_run: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> CrawlRunRequest:
        if self.max_id is not None and self.max_id < self.start_id:
            raise ValueError("max_id must be greater than or equal to start_id.")
        return self


class CrawlRunAcceptedResponse(BaseModel):
    status: str = "accepted"
    start_id: int
    max_id: int | None = None
    resume: bool
    find_max_id: bool
    dry_run: bool


class CrawlProgressResponse(BaseModel):
    """
    API response model for the crawl checkpoint.
    """

    last_processed_id: int = Field(..., ge=0)
    status: str
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    run_active: bool = False
