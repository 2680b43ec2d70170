"""Pydantic DTOs for the ingestion job queue."""

from typing import Any

from pydantic import BaseModel

from namestats.domain.entities.job import JobKind, JobStatus


class JobResponse(BaseModel):
    """Schema returned to the client for a single job."""

    id: str
    kind: JobKind
    status: JobStatus
    dataset_id: str | None = None
    payload: dict[str, Any] = {}
    result: dict[str, Any] | None = None
    attempts: int
    max_attempts: int
    last_error: str | None = None
    next_retry_at: str | None = None
    locked_by: str | None = None
    created_at: str
    started_at: str | None = None
    completed_at: str | None = None


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
