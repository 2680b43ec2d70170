"""SQLAlchemy implementation of the JobRepository — the persisted job queue."""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from namestats.application.interfaces.job_repository import JobRepository
from namestats.domain.entities.job import Job, JobKind, JobStatus
from namestats.domain.exceptions import JobNotFoundError
from namestats.infrastructure.database.base import as_utc
from namestats.infrastructure.database.models.job_models import JobModel

STALE_CLAIM_ERROR = "claim expired"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLAlchemyJobRepository(JobRepository):
    """Concrete job queue backed by PostgreSQL (or SQLite in tests) via SQLAlchemy.

    The caller owns the transaction: every method flushes, none commits.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # ── Queries ──────────────────────────────────────────────────────

    async def get_by_id(self, job_id: str) -> Job | None:
        result = await self._session.execute(
            select(JobModel).where(JobModel.id == job_id)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        kind: JobKind | None = None,
        dataset_id: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        stmt = select(JobModel)
        if status is not None:
            stmt = stmt.where(JobModel.status == status.value)
        if kind is not None:
            stmt = stmt.where(JobModel.kind == kind.value)
        if dataset_id is not None:
            stmt = stmt.where(JobModel.dataset_id == dataset_id)
        result = await self._session.execute(
            stmt.order_by(JobModel.created_at.desc()).limit(limit)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def get_active_for_dataset(self, dataset_id: str) -> Job | None:
        result = await self._session.execute(
            select(JobModel)
            .where(
                JobModel.dataset_id == dataset_id,
                JobModel.status.in_([JobStatus.QUEUED.value, JobStatus.RUNNING.value]),
            )
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    # ── Enqueue ──────────────────────────────────────────────────────

    async def enqueue(self, job: Job) -> Job:
        if not job.id:
            job.id = str(uuid.uuid4())

        model = JobModel(
            id=job.id,
            dataset_id=job.dataset_id,
            kind=job.kind.value,
            status=JobStatus.QUEUED.value,
            payload=job.payload,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            next_retry_at=job.next_retry_at,
            created_at=job.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        job.status = JobStatus.QUEUED
        return job

    # ── Claim ────────────────────────────────────────────────────────

    async def claim_next(self, owner: str) -> Job | None:
        """Claim the oldest eligible job in one UPDATE ... RETURNING statement.

        The inner SELECT takes ``FOR UPDATE SKIP LOCKED`` on PostgreSQL, so
        rows locked by a concurrent claim are skipped rather than waited on.
        SQLite ignores the locking clause; its BEGIN IMMEDIATE transactions
        serialize claims instead.
        """
        now = _utcnow()
        # Aliased so the subquery is not correlated to the outer UPDATE
        queued = aliased(JobModel, name="candidate")
        candidate = (
            select(queued.id)
            .where(
                queued.status == JobStatus.QUEUED.value,
                or_(queued.next_retry_at.is_(None), queued.next_retry_at <= now),
                queued.attempts < queued.max_attempts,
            )
            .order_by(queued.created_at.asc(), queued.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(JobModel)
            .where(JobModel.id == candidate)
            .values(
                status=JobStatus.RUNNING.value,
                locked_at=now,
                locked_by=owner,
                started_at=func.coalesce(JobModel.started_at, now),
                attempts=JobModel.attempts + 1,
            )
            .returning(JobModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        await self._session.flush()
        return self._to_domain(model) if model else None

    # ── Transitions ──────────────────────────────────────────────────

    async def complete(self, job_id: str, result: dict[str, Any] | None = None) -> bool:
        return await self._transition(
            job_id,
            status=JobStatus.COMPLETED.value,
            result=result,
            completed_at=_utcnow(),
            next_retry_at=None,
            locked_at=None,
            locked_by=None,
        )

    async def fail(self, job_id: str, error: str) -> bool:
        return await self._transition(
            job_id,
            status=JobStatus.FAILED.value,
            last_error=error,
            completed_at=_utcnow(),
            next_retry_at=None,
            locked_at=None,
            locked_by=None,
        )

    async def schedule_retry(self, job_id: str, error: str, next_retry_at: datetime) -> bool:
        return await self._transition(
            job_id,
            status=JobStatus.QUEUED.value,
            last_error=error,
            next_retry_at=next_retry_at,
            locked_at=None,
            locked_by=None,
        )

    async def requeue_stale(self, older_than: datetime) -> int:
        stale = [
            JobModel.status == JobStatus.RUNNING.value,
            JobModel.locked_at < older_than,
        ]
        exhausted = await self._session.execute(
            update(JobModel)
            .where(*stale, JobModel.attempts >= JobModel.max_attempts)
            .values(
                status=JobStatus.FAILED.value,
                last_error=STALE_CLAIM_ERROR,
                completed_at=_utcnow(),
                locked_at=None,
                locked_by=None,
            )
            .execution_options(synchronize_session=False)
        )
        requeued = await self._session.execute(
            update(JobModel)
            .where(*stale, JobModel.attempts < JobModel.max_attempts)
            .values(
                status=JobStatus.QUEUED.value,
                last_error=STALE_CLAIM_ERROR,
                next_retry_at=None,
                locked_at=None,
                locked_by=None,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.flush()
        return (exhausted.rowcount or 0) + (requeued.rowcount or 0)

    async def _transition(self, job_id: str, **values: Any) -> bool:
        """Apply *values* to a running job; False if it is no longer running."""
        result = await self._session.execute(
            update(JobModel)
            .where(JobModel.id == job_id, JobModel.status == JobStatus.RUNNING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._session.flush()
        if result.rowcount:
            return True

        exists = await self._session.execute(
            select(JobModel.id).where(JobModel.id == job_id)
        )
        if exists.scalar_one_or_none() is None:
            raise JobNotFoundError(job_id)
        return False

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: JobModel) -> Job:
        return Job(
            id=model.id,
            kind=JobKind(model.kind),
            dataset_id=model.dataset_id,
            payload=dict(model.payload or {}),
            status=JobStatus(model.status),
            result=model.result,
            attempts=model.attempts,
            max_attempts=model.max_attempts,
            last_error=model.last_error,
            next_retry_at=as_utc(model.next_retry_at),
            locked_at=as_utc(model.locked_at),
            locked_by=model.locked_by,
            created_at=as_utc(model.created_at),
            started_at=as_utc(model.started_at),
            completed_at=as_utc(model.completed_at),
        )
