"""Ingestion Service — dataset upload and job submission logic."""

import logging
import uuid
from pathlib import PurePath
from typing import BinaryIO

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from namestats.application.interfaces.dataset_repository import DatasetRepository
from namestats.application.interfaces.file_storage import FileStorage
from namestats.application.interfaces.job_repository import JobRepository
from namestats.application.services.parser_registry import ParserRegistry
from namestats.domain.entities.dataset import Dataset
from namestats.domain.entities.job import Job, JobKind, JobStatus
from namestats.domain.exceptions import (
    ActiveJobExistsError,
    DatasetNotFoundError,
    UploadRejectedError,
)

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({".csv", ".txt"})


class IngestionService:
    """Application service for accepting dataset files and queueing their jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: FileStorage,
        registry: ParserRegistry,
        max_upload_bytes: int = 100 * 1024 * 1024,
        max_attempts: int = 3,
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._registry = registry
        self._max_upload_bytes = max_upload_bytes
        self._max_attempts = max_attempts

    # ── Upload ───────────────────────────────────────────────────────

    async def submit_dataset(
        self,
        country_code: str,
        filename: str,
        content: bytes | BinaryIO,
        uploaded_by: str = "",
    ) -> tuple[Dataset, Job]:
        """Store an uploaded file and queue its parse job.

        The Dataset row and its Job are inserted in one transaction; if that
        fails the stored file is removed again.

        Raises:
            UploadRejectedError: empty or oversized file, unsupported extension,
                or no parser for *country_code*.
        """
        source_id = (country_code or "").strip().upper()
        file_size = self._size_of(content)
        self._check_upload(source_id, filename, file_size)

        dataset_id = str(uuid.uuid4())
        file_path = await self._storage.save(dataset_id, filename, content)

        try:
            async with self._session_factory() as session:
                dataset_repo, job_repo = self._repositories(session)
                dataset = await dataset_repo.create(
                    Dataset(
                        id=dataset_id,
                        country_code=source_id,
                        filename=PurePath(filename).name,
                        file_path=file_path,
                        file_size=file_size,
                        uploaded_by=uploaded_by,
                    )
                )
                job = await job_repo.enqueue(
                    Job(
                        kind=JobKind.PARSE_DATASET,
                        dataset_id=dataset_id,
                        payload={"dataset_id": dataset_id, "source_identifier": source_id},
                        max_attempts=self._max_attempts,
                    )
                )
                await session.commit()
        except Exception:
            await self._storage.delete(file_path)
            raise

        logger.info(
            "Queued job %s for dataset %s (%s, %s, %d bytes)",
            job.id,
            dataset_id,
            source_id,
            dataset.filename,
            file_size,
        )
        return dataset, job

    # ── Reprocessing ─────────────────────────────────────────────────

    async def request_reprocess(self, dataset_id: str, reason: str | None = None) -> Job:
        """Queue a reprocess job for an existing dataset.

        Raises:
            DatasetNotFoundError: no such dataset.
            ActiveJobExistsError: the dataset already has a queued or running job.
        """
        try:
            async with self._session_factory() as session:
                dataset_repo, job_repo = self._repositories(session)
                dataset = await dataset_repo.get_by_id(dataset_id)
                if dataset is None:
                    raise DatasetNotFoundError(dataset_id)
                if await job_repo.get_active_for_dataset(dataset_id) is not None:
                    raise ActiveJobExistsError(dataset_id)

                payload = {"dataset_id": dataset_id, "source_identifier": dataset.country_code}
                if reason:
                    payload["reason"] = reason
                job = await job_repo.enqueue(
                    Job(
                        kind=JobKind.REPROCESS_DATASET,
                        dataset_id=dataset_id,
                        payload=payload,
                        max_attempts=self._max_attempts,
                    )
                )
                await session.commit()
        except IntegrityError as exc:
            # Lost a race against another submission for the same dataset
            raise ActiveJobExistsError(dataset_id) from exc

        logger.info("Queued reprocess job %s for dataset %s", job.id, dataset_id)
        return job

    # ── Queries ──────────────────────────────────────────────────────

    async def get_job(self, job_id: str) -> Job | None:
        async with self._session_factory() as session:
            _, job_repo = self._repositories(session)
            return await job_repo.get_by_id(job_id)

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        dataset_id: str | None = None,
        limit: int = 100,
    ) -> list[Job]:
        async with self._session_factory() as session:
            _, job_repo = self._repositories(session)
            return await job_repo.list_jobs(status=status, dataset_id=dataset_id, limit=limit)

    async def get_dataset(self, dataset_id: str) -> Dataset | None:
        async with self._session_factory() as session:
            dataset_repo, _ = self._repositories(session)
            return await dataset_repo.get_by_id(dataset_id)

    # ── Helpers ──────────────────────────────────────────────────────

    def _check_upload(self, source_id: str, filename: str, file_size: int) -> None:
        if file_size == 0:
            raise UploadRejectedError("file is empty")
        if file_size > self._max_upload_bytes:
            raise UploadRejectedError(
                f"file too large: {file_size} bytes (max: {self._max_upload_bytes})"
            )
        extension = PurePath(filename or "").suffix.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise UploadRejectedError(
                f"unsupported file type {extension or '(none)'!r}: only .csv and .txt are accepted"
            )
        if not source_id or source_id not in self._registry:
            raise UploadRejectedError(f"no parser registered for source: {source_id or '(empty)'}")

    @staticmethod
    def _size_of(content: bytes | BinaryIO) -> int:
        if isinstance(content, bytes):
            return len(content)
        position = content.tell()
        size = content.seek(0, 2) - position
        content.seek(position)
        return size

    @staticmethod
    def _repositories(session: AsyncSession) -> tuple[DatasetRepository, JobRepository]:
        from namestats.infrastructure.database.repositories import (
            SQLAlchemyDatasetRepository,
            SQLAlchemyJobRepository,
        )

        return SQLAlchemyDatasetRepository(session), SQLAlchemyJobRepository(session)
