"""Abstract repository interface (port) for the persisted job queue."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from namestats.domain.entities.job import Job, JobKind, JobStatus


class JobRepository(ABC):
    """Port for job queue persistence — implemented in the infrastructure layer.

    All state changes go through the claim/complete/fail/retry operations;
    each is a single conditional statement so concurrent workers never act on
    a stale read.
    """

    @abstractmethod
    async def enqueue(self, job: Job) -> Job:
        """Persist a new queued job and return it with the generated ID."""
        ...

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Job | None:
        ...

    @abstractmethod
    async def list_jobs(
        self,
        status: JobStatus | None = None,
        kind: JobKind | None = None,
        dataset_id: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        """Retrieve jobs, most recent first."""
        ...

    @abstractmethod
    async def get_active_for_dataset(self, dataset_id: str) -> Job | None:
        """Return the queued or running job of a dataset, if any."""
        ...

    @abstractmethod
    async def claim_next(self, owner: str) -> Job | None:
        """Atomically claim the oldest eligible queued job for *owner*.

        Marks it running, stamps the claim and increments ``attempts``.
        Returns None when nothing is eligible.
        """
        ...

    @abstractmethod
    async def complete(self, job_id: str, result: dict[str, Any] | None = None) -> bool:
        """Mark a running job completed. Returns False if it was not running."""
        ...

    @abstractmethod
    async def fail(self, job_id: str, error: str) -> bool:
        """Mark a running job permanently failed. Returns False if it was not running."""
        ...

    @abstractmethod
    async def schedule_retry(self, job_id: str, error: str, next_retry_at: datetime) -> bool:
        """Return a running job to the queue, eligible again at *next_retry_at*."""
        ...

    @abstractmethod
    async def requeue_stale(self, older_than: datetime) -> int:
        """Recover running jobs whose claim predates *older_than*. Returns the count."""
        ...
