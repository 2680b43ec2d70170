"""Jobs API — read-only view of the ingestion queue."""

from fastapi import APIRouter, Depends, HTTPException, Query

from namestats.application.schemas.jobs import JobListResponse, JobResponse
from namestats.application.services import IngestionService
from namestats.domain.entities.job import Job, JobStatus
from namestats.infrastructure.dependencies import get_ingestion_service

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def job_to_response(job: Job) -> JobResponse:
    """Map a Job domain entity to its API response."""
    return JobResponse(
        id=job.id,
        kind=job.kind,
        status=job.status,
        dataset_id=job.dataset_id,
        payload=job.payload,
        result=job.result,
        attempts=job.attempts,
        max_attempts=job.max_attempts,
        last_error=job.last_error,
        next_retry_at=job.next_retry_at.isoformat() if job.next_retry_at else None,
        locked_by=job.locked_by,
        created_at=job.created_at.isoformat(),
        started_at=job.started_at.isoformat() if job.started_at else None,
        completed_at=job.completed_at.isoformat() if job.completed_at else None,
    )


@router.get("/", response_model=JobListResponse)
async def list_jobs(
    status: JobStatus | None = None,
    dataset_id: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    service: IngestionService = Depends(get_ingestion_service),
) -> JobListResponse:
    """List jobs, most recent first."""
    jobs = await service.list_jobs(status=status, dataset_id=dataset_id, limit=limit)
    return JobListResponse(jobs=[job_to_response(j) for j in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> JobResponse:
    job = await service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job_to_response(job)
