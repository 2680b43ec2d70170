"""Staging-table batch inserter — all-or-nothing commit of one dataset's names.

Flow inside a single transaction:
    1. CREATE TEMPORARY TABLE names_staging (loose columns, no constraints)
    2. Stream records into staging in batches of ``batch_size``
    3. Run one validation query over staging; add the stream's rejected rows
    4. Any invalid row → BatchValidationError, the transaction rolls back
    5. Otherwise replace the dataset's rows in ``names`` with the staged rows
"""

import logging
from typing import Any

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    literal,
    or_,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from namestats.application.interfaces.batch_inserter import BatchInserter
from namestats.application.interfaces.name_parser import RecordStream
from namestats.domain.exceptions import BatchValidationError
from namestats.domain.normalizer import MAX_NAME_LENGTH, MAX_YEAR, MIN_COUNT, MIN_YEAR
from namestats.infrastructure.database.models.dataset_models import NameModel

logger = logging.getLogger(__name__)

STAGING_TABLE = "names_staging"
DEFAULT_BATCH_SIZE = 1000
_SAMPLE_LIMIT = 5


def _staging_table() -> Table:
    """A fresh temporary table definition, detached from the ORM metadata."""
    return Table(
        STAGING_TABLE,
        MetaData(),
        Column("year", Integer, nullable=True),
        Column("name", Text, nullable=True),
        Column("gender", String(10), nullable=True),
        Column("count", Integer, nullable=True),
        prefixes=["TEMPORARY"],
    )


class StagingBatchInserter(BatchInserter):
    """Inserts parsed records through a per-transaction staging table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        self._session_factory = session_factory
        self._batch_size = batch_size

    async def insert(self, dataset_id: str, country_code: str, stream: RecordStream) -> int:
        staging = _staging_table()

        async with self._session_factory() as session:
            async with session.begin():
                await session.run_sync(
                    lambda sync_session: staging.create(sync_session.connection())
                )

                staged = await self._stage(session, staging, stream)
                invalid, samples = await self._validate(session, staging)
                rejected = stream.rejected_count

                if invalid or rejected:
                    samples.extend(str(error) for error in stream.errors[:_SAMPLE_LIMIT])
                    logger.warning(
                        "Rejecting dataset %s: %d invalid staged row(s), %d unparseable row(s)",
                        dataset_id,
                        invalid,
                        rejected,
                    )
                    # Raising inside session.begin() rolls back the staging table too
                    raise BatchValidationError(invalid, rejected, samples[:_SAMPLE_LIMIT])

                names = NameModel.__table__
                replaced = await session.execute(
                    delete(names).where(names.c.dataset_id == dataset_id)
                )
                await session.execute(
                    insert(names).from_select(
                        ["dataset_id", "country_code", "year", "name", "gender", "count"],
                        select(
                            literal(dataset_id, String(36)),
                            literal(country_code, String(10)),
                            staging.c["year"],
                            staging.c["name"],
                            staging.c["gender"],
                            staging.c["count"],
                        ),
                    )
                )
                await session.run_sync(
                    lambda sync_session: staging.drop(sync_session.connection())
                )

        logger.info(
            "Committed %d name row(s) for dataset %s (replaced %d)",
            staged,
            dataset_id,
            replaced.rowcount or 0,
        )
        return staged

    # ── Steps ────────────────────────────────────────────────────────

    async def _stage(self, session: AsyncSession, staging: Table, stream: RecordStream) -> int:
        """Drain *stream* into staging; returns the number of staged rows."""
        batch: list[dict[str, Any]] = []
        staged = 0

        async for record in stream:
            batch.append(
                {
                    "year": record.year,
                    "name": record.name,
                    "gender": record.gender,
                    "count": record.count,
                }
            )
            if len(batch) >= self._batch_size:
                await session.execute(insert(staging), batch)
                staged += len(batch)
                logger.debug("Staged %d row(s)", staged)
                batch = []

        if batch:
            await session.execute(insert(staging), batch)
            staged += len(batch)

        return staged

    async def _validate(self, session: AsyncSession, staging: Table) -> tuple[int, list[str]]:
        """Count invalid staged rows; returns (count, sample descriptions)."""
        year, name, gender, count = (
            staging.c["year"], staging.c["name"], staging.c["gender"], staging.c["count"]
        )
        invalid_row = or_(
            name.is_(None),
            func.length(func.trim(name)) == 0,
            func.length(name) > MAX_NAME_LENGTH,
            gender.is_(None),
            gender.not_in(["M", "F"]),
            count.is_(None),
            count < MIN_COUNT,
            year.is_(None),
            year < MIN_YEAR,
            year > MAX_YEAR,
        )

        invalid = await session.scalar(
            select(func.count()).select_from(staging).where(invalid_row)
        )
        sample_rows = await session.execute(
            select(year, name, gender, count).where(invalid_row).limit(_SAMPLE_LIMIT)
        )
        samples = [
            f"invalid row {row_name!r},{row_gender!r},{row_count!r} ({row_year})"
            for row_year, row_name, row_gender, row_count in sample_rows
        ]

        duplicates = (
            select(year, name, gender)
            .group_by(year, name, gender)
            .having(func.count() > 1)
            .subquery()
        )
        duplicate_keys = await session.scalar(
            select(func.count()).select_from(duplicates)
        )
        if duplicate_keys:
            samples.append(f"{duplicate_keys} duplicate (year, name, gender) key(s)")

        return (invalid or 0) + (duplicate_keys or 0), samples
