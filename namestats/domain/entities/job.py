"""Domain entity for ingestion jobs — database-backed job queue."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Lifecycle states of an ingestion job."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(str, Enum):
    """Operations a job can ask the processor to perform."""

    PARSE_DATASET = "parse_dataset"
    REPROCESS_DATASET = "reprocess_dataset"


@dataclass
class Job:
    """A single unit of asynchronous ingestion work.

    The payload is opaque to the queue and interpreted by the processor:
    ``{"dataset_id": ..., "source_identifier": ..., "reason": ...}``.
    ``locked_at``/``locked_by`` are only set while the job is running.
    """

    kind: JobKind
    dataset_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    status: JobStatus = JobStatus.QUEUED
    result: dict[str, Any] | None = None
    attempts: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    next_retry_at: datetime | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def source_identifier(self) -> str | None:
        return self.payload.get("source_identifier")

    @property
    def reason(self) -> str | None:
        return self.payload.get("reason")

