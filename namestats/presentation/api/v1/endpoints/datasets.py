"""Datasets API — upload source files and request reprocessing."""

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, UploadFile, status

from namestats.application.schemas.datasets import (
    DatasetResponse,
    ReprocessRequest,
    UploadDatasetResponse,
)
from namestats.application.schemas.jobs import JobResponse
from namestats.application.services import IngestionService
from namestats.domain.entities.dataset import Dataset
from namestats.domain.exceptions import (
    ActiveJobExistsError,
    DatasetNotFoundError,
    UploadRejectedError,
)
from namestats.infrastructure.dependencies import get_ingestion_service
from namestats.presentation.api.v1.endpoints.jobs import job_to_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasets", tags=["Datasets"])


def _dataset_to_response(dataset: Dataset) -> DatasetResponse:
    """Map a Dataset domain entity to its API response."""
    return DatasetResponse(
        id=dataset.id,
        country_code=dataset.country_code,
        filename=dataset.filename,
        file_size=dataset.file_size,
        status=dataset.status,
        row_count=dataset.row_count,
        error_message=dataset.error_message,
        uploaded_by=dataset.uploaded_by,
        uploaded_at=dataset.uploaded_at.isoformat(),
        processed_at=dataset.processed_at.isoformat() if dataset.processed_at else None,
    )


@router.post("/", response_model=UploadDatasetResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_dataset(
    file: UploadFile,
    country_code: str = Form(...),
    uploaded_by: str = Form(""),
    service: IngestionService = Depends(get_ingestion_service),
) -> UploadDatasetResponse:
    """Store a source file and queue it for parsing."""
    try:
        dataset, job = await service.submit_dataset(
            country_code=country_code,
            filename=file.filename or "",
            content=file.file,
            uploaded_by=uploaded_by,
        )
    except UploadRejectedError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return UploadDatasetResponse(
        dataset=_dataset_to_response(dataset),
        job=job_to_response(job),
    )


@router.get("/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(
    dataset_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> DatasetResponse:
    dataset = await service.get_dataset(dataset_id)
    if dataset is None:
        raise HTTPException(status_code=404, detail=f"Dataset {dataset_id} not found")
    return _dataset_to_response(dataset)


@router.post(
    "/{dataset_id}/reprocess",
    response_model=JobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reprocess_dataset(
    dataset_id: str,
    request: ReprocessRequest | None = None,
    service: IngestionService = Depends(get_ingestion_service),
) -> JobResponse:
    """Queue a dataset to be parsed again, replacing its current rows."""
    try:
        job = await service.request_reprocess(
            dataset_id, reason=request.reason if request else None
        )
    except DatasetNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ActiveJobExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return job_to_response(job)
