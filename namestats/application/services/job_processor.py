"""Job processor — runs one claimed ingestion job and records its outcome."""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from namestats.application.interfaces.batch_inserter import BatchInserter
from namestats.application.interfaces.dataset_repository import DatasetRepository
from namestats.application.interfaces.file_storage import FileStorage
from namestats.application.interfaces.job_repository import JobRepository
from namestats.application.services.parser_registry import ParserRegistry
from namestats.domain.entities.dataset import Dataset, DatasetStatus
from namestats.domain.entities.job import Job, JobKind
from namestats.domain.exceptions import (
    DatasetNotFoundError,
    IngestionError,
    MalformedJobError,
    UnknownJobKindError,
    is_permanent,
)

logger = logging.getLogger(__name__)

# Fixed backoff: first retry after 1 minute, second after 5, then every 15
RETRY_DELAYS = (
    timedelta(minutes=1),
    timedelta(minutes=5),
    timedelta(minutes=15),
)

_DATASET_STATUS_FOR_KIND = {
    JobKind.PARSE_DATASET: DatasetStatus.PROCESSING,
    JobKind.REPROCESS_DATASET: DatasetStatus.REPROCESSING,
}


def retry_delay(attempts: int) -> timedelta:
    """Delay before the next try after *attempts* failed attempts."""
    index = min(max(attempts, 1), len(RETRY_DELAYS)) - 1
    return RETRY_DELAYS[index]


def next_retry_at(attempts: int, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + retry_delay(attempts)


class JobProcessor:
    """Executes claimed jobs: load the file, parse it, commit the records.

    Each step uses its own short-lived session so that no transaction stays
    open while another is waiting (SQLite serializes writers). Failures are
    classified by exception type: permanent errors fail the job at once,
    everything else is retried with a fixed backoff until ``max_attempts``.

    Setting ``abort`` makes any running parse stop at its next row; the job
    then goes through the transient failure path.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: ParserRegistry,
        storage: FileStorage,
        inserter: BatchInserter,
    ) -> None:
        self._session_factory = session_factory
        self._registry = registry
        self._storage = storage
        self._inserter = inserter
        self.abort = asyncio.Event()

    # ── Queue access ─────────────────────────────────────────────────

    async def claim_next(self, owner: str) -> Job | None:
        async with self._session_factory() as session:
            job_repo, _ = self._repositories(session)
            job = await job_repo.claim_next(owner)
            await session.commit()
        if job is not None:
            logger.info(
                "Job %s (%s) claimed by %s, dataset=%s attempt %d/%d",
                job.id,
                job.kind.value,
                owner,
                job.dataset_id,
                job.attempts,
                job.max_attempts,
            )
        return job

    async def requeue_stale(self, older_than: datetime) -> int:
        """Return abandoned running jobs to the queue; see JobRepository.requeue_stale."""
        async with self._session_factory() as session:
            job_repo, _ = self._repositories(session)
            count = await job_repo.requeue_stale(older_than)
            await session.commit()
        if count:
            logger.warning("Recovered %d job(s) with claims older than %s", count, older_than)
        return count

    async def process(self, job: Job) -> bool:
        """Run *job* to completion. Returns True on success.

        Never raises for job-level failures; they are recorded on the job and
        its dataset instead.
        """
        started = time.perf_counter()
        try:
            dataset, rows = await self._run(job)
            await self._finish(job, dataset, rows)
        except Exception as exc:
            await self._record_failure(job, exc)
            return False

        logger.info(
            "Job %s completed: %d row(s) for dataset %s in %.2fs",
            job.id,
            rows,
            dataset.id,
            time.perf_counter() - started,
        )
        return True

    # ── Steps ────────────────────────────────────────────────────────

    async def _run(self, job: Job) -> tuple[Dataset, int]:
        dataset_status = _DATASET_STATUS_FOR_KIND.get(job.kind)
        if dataset_status is None:
            raise UnknownJobKindError(str(job.kind))

        dataset_id = job.payload.get("dataset_id") or job.dataset_id
        if not dataset_id:
            raise MalformedJobError(f"job {job.id} has no dataset_id")

        async with self._session_factory() as session:
            _, dataset_repo = self._repositories(session)
            dataset = await dataset_repo.get_by_id(dataset_id)
            if dataset is None:
                raise DatasetNotFoundError(dataset_id)
            await dataset_repo.update_status(dataset_id, dataset_status)
            await session.commit()

        source_id = job.source_identifier or dataset.country_code
        parser = self._registry.get(source_id)
        if job.reason:
            logger.info("Reprocessing dataset %s: %s", dataset_id, job.reason)

        async with self._storage.load(dataset.file_path) as source:
            parser.validate(source)

        async with self._storage.load(dataset.file_path) as source:
            stream = parser.parse(source, filename=dataset.filename, cancel=self.abort)
            rows = await self._inserter.insert(dataset.id, dataset.country_code, stream)

        return dataset, rows

    async def _finish(self, job: Job, dataset: Dataset, rows: int) -> None:
        async with self._session_factory() as session:
            job_repo, dataset_repo = self._repositories(session)
            await dataset_repo.update_completed(dataset.id, rows)
            if not await job_repo.complete(job.id, {"rows_inserted": rows}):
                logger.warning("Job %s was no longer running when it completed", job.id)
            await session.commit()

    async def _record_failure(self, job: Job, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        permanent = is_permanent(exc)
        retry = not permanent and job.attempts < job.max_attempts
        dataset_id = job.payload.get("dataset_id") or job.dataset_id

        if permanent:
            logger.error("Job %s failed permanently: %s", job.id, message)
        elif retry:
            logger.warning(
                "Job %s attempt %d/%d failed, will retry: %s",
                job.id,
                job.attempts,
                job.max_attempts,
                message,
                exc_info=not isinstance(exc, IngestionError),
            )
        else:
            logger.error(
                "Job %s failed after %d attempt(s): %s", job.id, job.attempts, message
            )

        try:
            async with self._session_factory() as session:
                job_repo, dataset_repo = self._repositories(session)
                if retry:
                    await job_repo.schedule_retry(job.id, message, next_retry_at(job.attempts))
                else:
                    await job_repo.fail(job.id, message)
                if dataset_id:
                    try:
                        await dataset_repo.update_failed(dataset_id, message)
                    except DatasetNotFoundError:
                        logger.warning("Dataset %s of job %s no longer exists", dataset_id, job.id)
                await session.commit()
        except Exception:
            # The claim stays in place; stale-claim recovery picks the job up
            logger.exception("Could not record failure of job %s", job.id)

    @staticmethod
    def _repositories(session: AsyncSession) -> tuple[JobRepository, DatasetRepository]:
        from namestats.infrastructure.database.repositories import (
            SQLAlchemyDatasetRepository,
            SQLAlchemyJobRepository,
        )

        return SQLAlchemyJobRepository(session), SQLAlchemyDatasetRepository(session)
