"""End-to-end tests for the job processor: stored file → parser → names table."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import func, select

from namestats.application.services import IngestionService, JobProcessor
from namestats.domain.entities.dataset import Dataset, DatasetStatus
from namestats.domain.entities.job import Job, JobKind, JobStatus
from namestats.infrastructure.database.batch_inserter import StagingBatchInserter
from namestats.infrastructure.database.models.dataset_models import NameModel
from namestats.infrastructure.database.repositories import (
    SQLAlchemyDatasetRepository,
    SQLAlchemyJobRepository,
)
from tests.helpers import US_SAMPLE


@pytest.fixture
def processor(session_factory, registry, storage):
    return JobProcessor(
        session_factory=session_factory,
        registry=registry,
        storage=storage,
        inserter=StagingBatchInserter(session_factory, batch_size=100),
    )


async def _load(session_factory, job_id: str, dataset_id: str) -> tuple[Job, Dataset]:
    async with session_factory() as session:
        job = await SQLAlchemyJobRepository(session).get_by_id(job_id)
        dataset = await SQLAlchemyDatasetRepository(session).get_by_id(dataset_id)
    return job, dataset


async def _name_count(session_factory, dataset_id: str) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(func.count()).select_from(NameModel).where(NameModel.dataset_id == dataset_id)
        )


async def _submit_and_claim(ingestion, processor, content: bytes = US_SAMPLE, filename: str = "yob2023.txt"):
    dataset, queued = await ingestion.submit_dataset("US", filename, content)
    job = await processor.claim_next("test-worker")
    assert job.id == queued.id
    return dataset, job


class TestJobProcessor:
    @pytest.mark.asyncio
    async def test_parses_file_into_names(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor)

        assert await processor.process(job) is True

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.COMPLETED
        assert job.result == {"rows_inserted": 2}
        assert dataset.status == DatasetStatus.COMPLETED
        assert dataset.row_count == 2
        assert dataset.processed_at is not None

        async with session_factory() as session:
            rows = (
                await session.execute(
                    select(NameModel.year, NameModel.name, NameModel.gender, NameModel.count)
                    .where(NameModel.dataset_id == dataset.id)
                    .order_by(NameModel.name)
                )
            ).all()
        assert [tuple(row) for row in rows] == [
            (2023, "Emma", "F", 15581),
            (2023, "Liam", "M", 19659),
        ]

    @pytest.mark.asyncio
    async def test_unregistered_source_fails_permanently(self, session_factory, storage, processor):
        path = await storage.save("ds-zz", "yob2023.txt", US_SAMPLE)
        async with session_factory() as session:
            await SQLAlchemyDatasetRepository(session).create(
                Dataset(
                    id="ds-zz",
                    country_code="ZZ",
                    filename="yob2023.txt",
                    file_path=path,
                    file_size=len(US_SAMPLE),
                )
            )
            queued = await SQLAlchemyJobRepository(session).enqueue(
                Job(
                    kind=JobKind.PARSE_DATASET,
                    dataset_id="ds-zz",
                    payload={"dataset_id": "ds-zz", "source_identifier": "ZZ"},
                )
            )
            await session.commit()

        job = await processor.claim_next("test-worker")
        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, queued.id, "ds-zz")
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
        assert "no parser registered for source: ZZ" in job.last_error
        assert dataset.status == DatasetStatus.FAILED
        assert dataset.error_message == job.last_error

    @pytest.mark.asyncio
    async def test_non_numeric_count_fails_without_rows(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor, b"Emma,F,15581\nLiam,M,abc\n")

        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.FAILED
        assert job.attempts == 1
        assert dataset.status == DatasetStatus.FAILED
        assert await _name_count(session_factory, dataset.id) == 0

    @pytest.mark.asyncio
    async def test_bad_row_deep_in_file_rejects_everything(self, session_factory, ingestion, processor):
        good = b"".join(f"Name{chr(65 + n)},F,{n + 1}\n".encode() for n in range(12))
        dataset, job = await _submit_and_claim(ingestion, processor, good + b"Broken,F,many\n")

        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.FAILED
        assert "1 unparseable row(s)" in job.last_error
        assert "line 13" in job.last_error
        assert await _name_count(session_factory, dataset.id) == 0

    @pytest.mark.asyncio
    async def test_filename_without_year_fails(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor, filename="names.txt")

        assert await processor.process(job) is False

        job, _ = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.FAILED
        assert "invalid filename format" in job.last_error

    @pytest.mark.asyncio
    async def test_missing_file_is_retried(self, session_factory, storage, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor)
        await storage.delete(dataset.file_path)

        before = datetime.now(timezone.utc)
        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.QUEUED
        assert job.attempts == 1
        assert "file not found in storage" in job.last_error
        assert before + timedelta(seconds=55) < job.next_retry_at < before + timedelta(seconds=65)
        assert job.locked_by is None
        assert dataset.status == DatasetStatus.FAILED

    @pytest.mark.asyncio
    async def test_last_attempt_fails_job(self, session_factory, storage, registry, processor):
        ingestion = IngestionService(
            session_factory=session_factory,
            storage=storage,
            registry=registry,
            max_attempts=1,
        )
        dataset, job = await _submit_and_claim(ingestion, processor)
        await storage.delete(dataset.file_path)

        assert await processor.process(job) is False

        job, _ = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.FAILED
        assert job.next_retry_at is None

    @pytest.mark.asyncio
    async def test_abort_sends_job_to_retry(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor)
        processor.abort.set()

        assert await processor.process(job) is False

        job, _ = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.QUEUED
        assert "cancelled" in job.last_error
        assert await _name_count(session_factory, dataset.id) == 0

    @pytest.mark.asyncio
    async def test_reprocess_replaces_rows(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor)
        assert await processor.process(job) is True

        queued = await ingestion.request_reprocess(dataset.id, reason="parser fix")
        job = await processor.claim_next("test-worker")
        assert job.id == queued.id
        assert job.kind == JobKind.REPROCESS_DATASET
        assert job.reason == "parser fix"

        assert await processor.process(job) is True

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.COMPLETED
        assert dataset.status == DatasetStatus.COMPLETED
        assert await _name_count(session_factory, dataset.id) == 2

    @pytest.mark.asyncio
    async def test_failed_reprocess_drops_previous_rows(self, session_factory, ingestion, processor):
        dataset, job = await _submit_and_claim(ingestion, processor)
        assert await processor.process(job) is True
        assert await _name_count(session_factory, dataset.id) == 2

        Path(dataset.file_path).write_bytes(b"Emma,F,15581\nLiam,M,abc\n")
        await ingestion.request_reprocess(dataset.id)
        job = await processor.claim_next("test-worker")

        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.FAILED
        assert dataset.status == DatasetStatus.FAILED
        assert dataset.row_count is None
        assert await _name_count(session_factory, dataset.id) == 0

    @pytest.mark.asyncio
    async def test_rows_removed_when_completion_cannot_be_recorded(
        self, monkeypatch, session_factory, ingestion, processor
    ):
        dataset, job = await _submit_and_claim(ingestion, processor)

        async def broken_update(self, dataset_id, row_count):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(SQLAlchemyDatasetRepository, "update_completed", broken_update)

        assert await processor.process(job) is False

        job, dataset = await _load(session_factory, job.id, dataset.id)
        assert job.status == JobStatus.QUEUED
        assert dataset.status == DatasetStatus.FAILED
        assert await _name_count(session_factory, dataset.id) == 0

    @pytest.mark.asyncio
    async def test_requeue_stale(self, session_factory, ingestion, processor):
        _, job = await _submit_and_claim(ingestion, processor)

        count = await processor.requeue_stale(datetime.now(timezone.utc) + timedelta(minutes=1))

        assert count == 1
        assert (await processor.claim_next("other-worker")).id == job.id
