"""Pydantic DTOs (Data Transfer Objects) for dataset uploads and reprocessing."""

from pydantic import BaseModel, Field

from namestats.application.schemas.jobs import JobResponse
from namestats.domain.entities.dataset import DatasetStatus


class DatasetResponse(BaseModel):
    """Schema returned to the client for an uploaded dataset."""

    id: str
    country_code: str
    filename: str
    file_size: int
    status: DatasetStatus
    row_count: int | None = None
    error_message: str | None = None
    uploaded_by: str = ""
    uploaded_at: str
    processed_at: str | None = None


class UploadDatasetResponse(BaseModel):
    dataset: DatasetResponse
    job: JobResponse


class ReprocessRequest(BaseModel):
    """Schema for requesting a dataset to be parsed again; reason optional."""

    reason: str | None = Field(None, max_length=500, examples=["parser fix for hyphenated names"])
