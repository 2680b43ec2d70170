"""SQLAlchemy ORM model for the persisted ingestion job queue."""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from namestats.infrastructure.database.base import Base

# JSONB on PostgreSQL, plain JSON text elsewhere
_JSONType = JSON().with_variant(JSONB(), "postgresql")

_ACTIVE_STATUSES = text("status IN ('queued', 'running')")


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class JobModel(Base):
    """A single unit of work in the ingestion queue.

    ``locked_at``/``locked_by`` hold the current claim and are cleared on
    every transition out of ``running``.
    """

    __tablename__ = "jobs"

    # ── Identity ──────────────────────────────────────────────────────
    id = Column(String(36), primary_key=True, default=_generate_uuid)
    dataset_id = Column(
        String(36),
        ForeignKey("datasets.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    kind = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="queued")
    payload = Column(_JSONType, nullable=True)
    result = Column(_JSONType, nullable=True)

    # ── Retry bookkeeping ─────────────────────────────────────────────
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    last_error = Column(Text, nullable=True)
    next_retry_at = Column(DateTime(timezone=True), nullable=True)

    # ── Claim ─────────────────────────────────────────────────────────
    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by = Column(String(100), nullable=True)

    # ── Timestamps ────────────────────────────────────────────────────
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # ── Constraints & indexes ─────────────────────────────────────────
    __table_args__ = (
        CheckConstraint(
            "kind IN ('parse_dataset', 'reprocess_dataset')", name="chk_jobs_kind"
        ),
        CheckConstraint(
            "status IN ('queued', 'running', 'completed', 'failed')", name="chk_jobs_status"
        ),
        CheckConstraint(
            "attempts >= 0 AND attempts <= max_attempts", name="chk_jobs_attempts"
        ),
        Index("idx_jobs_status_next_retry", "status", "next_retry_at"),
        Index("idx_jobs_created_at", "created_at"),
        # At most one queued or running job per dataset
        Index(
            "uq_jobs_active_dataset",
            "dataset_id",
            unique=True,
            postgresql_where=_ACTIVE_STATUSES,
            sqlite_where=_ACTIVE_STATUSES,
        ),
    )
