"""SQLAlchemy implementation of the DatasetRepository."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from namestats.application.interfaces.dataset_repository import DatasetRepository
from namestats.domain.entities.dataset import Dataset, DatasetStatus
from namestats.domain.exceptions import DatasetNotFoundError
from namestats.infrastructure.database.base import as_utc
from namestats.infrastructure.database.models.dataset_models import DatasetModel, NameModel


class SQLAlchemyDatasetRepository(DatasetRepository):
    """Concrete dataset repository backed by PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, dataset_id: str) -> Dataset | None:
        model = await self._get_model(dataset_id)
        return self._to_domain(model) if model else None

    async def create(self, dataset: Dataset) -> Dataset:
        if not dataset.id:
            dataset.id = str(uuid.uuid4())

        model = DatasetModel(
            id=dataset.id,
            country_code=dataset.country_code,
            filename=dataset.filename,
            file_path=dataset.file_path,
            file_size=dataset.file_size,
            status=dataset.status.value,
            uploaded_by=dataset.uploaded_by,
            uploaded_at=dataset.uploaded_at,
        )
        self._session.add(model)
        await self._session.flush()
        return dataset

    async def update_status(self, dataset_id: str, status: DatasetStatus) -> None:
        model = await self._require(dataset_id)
        model.status = status.value
        await self._session.flush()

    async def update_failed(self, dataset_id: str, message: str) -> None:
        model = await self._require(dataset_id)
        # A failed dataset never exposes names from an earlier or partial run
        await self._session.execute(delete(NameModel).where(NameModel.dataset_id == dataset_id))
        model.row_count = None
        model.status = DatasetStatus.FAILED.value
        model.error_message = message
        model.processed_at = datetime.now(timezone.utc)
        await self._session.flush()

    async def update_completed(self, dataset_id: str, row_count: int) -> None:
        model = await self._require(dataset_id)
        model.status = DatasetStatus.COMPLETED.value
        model.row_count = row_count
        model.error_message = None
        model.processed_at = datetime.now(timezone.utc)
        await self._session.flush()

    # ── Helpers ──────────────────────────────────────────────────────

    async def _get_model(self, dataset_id: str) -> DatasetModel | None:
        result = await self._session.execute(
            select(DatasetModel).where(DatasetModel.id == dataset_id)
        )
        return result.scalar_one_or_none()

    async def _require(self, dataset_id: str) -> DatasetModel:
        model = await self._get_model(dataset_id)
        if model is None:
            raise DatasetNotFoundError(dataset_id)
        return model

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: DatasetModel) -> Dataset:
        return Dataset(
            id=model.id,
            country_code=model.country_code,
            filename=model.filename,
            file_path=model.file_path,
            file_size=model.file_size,
            status=DatasetStatus(model.status),
            row_count=model.row_count,
            error_message=model.error_message,
            uploaded_by=model.uploaded_by or "",
            uploaded_at=as_utc(model.uploaded_at),
            processed_at=as_utc(model.processed_at),
        )
