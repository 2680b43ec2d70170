"""Integration tests for dataset submission and reprocess requests."""

from io import BytesIO
from pathlib import Path

import pytest

from namestats.application.services import IngestionService
from namestats.domain.entities.dataset import DatasetStatus
from namestats.domain.entities.job import JobKind, JobStatus
from namestats.domain.exceptions import (
    ActiveJobExistsError,
    DatasetNotFoundError,
    UploadRejectedError,
)
from namestats.infrastructure.database.repositories import SQLAlchemyJobRepository
from tests.helpers import US_SAMPLE


class TestSubmitDataset:
    @pytest.mark.asyncio
    async def test_stores_file_and_queues_job(self, ingestion, storage):
        dataset, job = await ingestion.submit_dataset(
            "us", "yob2023.txt", US_SAMPLE, uploaded_by="analyst@example.org"
        )

        assert dataset.country_code == "US"
        assert dataset.status == DatasetStatus.PENDING
        assert dataset.file_size == len(US_SAMPLE)
        assert dataset.uploaded_by == "analyst@example.org"
        assert Path(dataset.file_path).read_bytes() == US_SAMPLE

        assert job.kind == JobKind.PARSE_DATASET
        assert job.status == JobStatus.QUEUED
        assert job.dataset_id == dataset.id
        assert job.payload == {"dataset_id": dataset.id, "source_identifier": "US"}
        assert job.max_attempts == 3

        stored = await ingestion.get_job(job.id)
        assert stored.status == JobStatus.QUEUED
        assert (await ingestion.get_dataset(dataset.id)).filename == "yob2023.txt"

    @pytest.mark.asyncio
    async def test_accepts_stream(self, ingestion):
        dataset, _ = await ingestion.submit_dataset("US", "yob2023.csv", BytesIO(US_SAMPLE))
        assert dataset.file_size == len(US_SAMPLE)

    @pytest.mark.asyncio
    async def test_strips_client_directories_from_filename(self, ingestion):
        dataset, _ = await ingestion.submit_dataset("US", "exports/yob2023.txt", US_SAMPLE)
        assert dataset.filename == "yob2023.txt"

    @pytest.mark.parametrize(
        "country_code, filename, content, message",
        [
            ("US", "yob2023.txt", b"", "empty"),
            ("US", "yob2023.xlsx", US_SAMPLE, "unsupported file type"),
            ("US", "yob2023", US_SAMPLE, "unsupported file type"),
            ("ZZ", "yob2023.txt", US_SAMPLE, "no parser registered"),
            ("", "yob2023.txt", US_SAMPLE, "no parser registered"),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejections(self, ingestion, storage, tmp_path, country_code, filename, content, message):
        with pytest.raises(UploadRejectedError, match=message):
            await ingestion.submit_dataset(country_code, filename, content)

        uploads = tmp_path / "uploads"
        assert not uploads.exists() or not any(uploads.iterdir())

    @pytest.mark.asyncio
    async def test_too_large(self, session_factory, storage, registry):
        small = IngestionService(session_factory, storage, registry, max_upload_bytes=10)
        with pytest.raises(UploadRejectedError, match="too large"):
            await small.submit_dataset("US", "yob2023.txt", US_SAMPLE)

    @pytest.mark.asyncio
    async def test_file_removed_when_enqueue_fails(self, ingestion, tmp_path, monkeypatch):
        async def broken_enqueue(self, job):
            raise RuntimeError("database went away")

        monkeypatch.setattr(SQLAlchemyJobRepository, "enqueue", broken_enqueue)

        with pytest.raises(RuntimeError):
            await ingestion.submit_dataset("US", "yob2023.txt", US_SAMPLE)

        uploads = tmp_path / "uploads"
        assert not uploads.exists() or not any(uploads.iterdir())


class TestRequestReprocess:
    async def _complete(self, session_factory, job_id: str) -> None:
        async with session_factory() as session:
            repo = SQLAlchemyJobRepository(session)
            await repo.claim_next("test-worker")
            await repo.complete(job_id)
            await session.commit()

    @pytest.mark.asyncio
    async def test_unknown_dataset(self, ingestion):
        with pytest.raises(DatasetNotFoundError):
            await ingestion.request_reprocess("no-such-dataset")

    @pytest.mark.asyncio
    async def test_active_job_blocks_reprocess(self, ingestion):
        dataset, _ = await ingestion.submit_dataset("US", "yob2023.txt", US_SAMPLE)

        with pytest.raises(ActiveJobExistsError):
            await ingestion.request_reprocess(dataset.id)

    @pytest.mark.asyncio
    async def test_queues_reprocess_job(self, ingestion, session_factory):
        dataset, job = await ingestion.submit_dataset("US", "yob2023.txt", US_SAMPLE)
        await self._complete(session_factory, job.id)

        reprocess = await ingestion.request_reprocess(dataset.id, reason="parser fix")

        assert reprocess.kind == JobKind.REPROCESS_DATASET
        assert reprocess.payload == {
            "dataset_id": dataset.id,
            "source_identifier": "US",
            "reason": "parser fix",
        }
        jobs = await ingestion.list_jobs(dataset_id=dataset.id)
        assert {j.id for j in jobs} == {job.id, reprocess.id}

    @pytest.mark.asyncio
    async def test_reason_is_optional(self, ingestion, session_factory):
        dataset, job = await ingestion.submit_dataset("US", "yob2023.txt", US_SAMPLE)
        await self._complete(session_factory, job.id)

        reprocess = await ingestion.request_reprocess(dataset.id)

        assert "reason" not in reprocess.payload
        assert reprocess.reason is None
