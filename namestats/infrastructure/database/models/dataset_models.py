"""SQLAlchemy ORM models for uploaded datasets and their ingested name rows."""

import uuid

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from namestats.infrastructure.database.base import Base


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class DatasetModel(Base):
    """One uploaded source file and its parse status."""

    __tablename__ = "datasets"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    country_code = Column(String(10), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    row_count = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    uploaded_by = Column(String(100), nullable=False, server_default="")
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'reprocessing')",
            name="chk_datasets_status",
        ),
        CheckConstraint("file_size > 0", name="chk_datasets_file_size"),
        CheckConstraint("row_count IS NULL OR row_count >= 0", name="chk_datasets_row_count"),
        Index("idx_datasets_status", "status"),
        Index("idx_datasets_uploaded_at", "uploaded_at"),
    )


class NameModel(Base):
    """A single (year, name, gender, count) fact from a committed dataset."""

    __tablename__ = "names"

    # SQLite only auto-increments INTEGER PRIMARY KEY columns
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    dataset_id = Column(
        String(36),
        ForeignKey("datasets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    country_code = Column(String(10), nullable=False)
    year = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    gender = Column(String(1), nullable=False)
    count = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("year BETWEEN 1800 AND 2100", name="chk_names_year"),
        CheckConstraint("gender IN ('M', 'F')", name="chk_names_gender"),
        CheckConstraint("count > 0", name="chk_names_count"),
        CheckConstraint(
            "LENGTH(name) > 0 AND LENGTH(name) <= 100", name="chk_names_name_length"
        ),
        UniqueConstraint(
            "dataset_id", "year", "name", "gender", name="uq_names_dataset_year_name_gender"
        ),
        Index("idx_names_country_year_gender", "country_code", "year", "gender"),
        Index("idx_names_name_country", "name", "country_code"),
    )
