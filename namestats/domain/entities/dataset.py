"""Domain entity for uploaded datasets."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DatasetStatus(str, Enum):
    """Processing states of an uploaded dataset file."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REPROCESSING = "reprocessing"


@dataclass
class Dataset:
    """One uploaded source file for a country.

    ``country_code`` doubles as the source identifier used to pick a parser.
    """

    country_code: str
    filename: str
    file_path: str
    file_size: int
    id: str | None = None
    status: DatasetStatus = DatasetStatus.PENDING
    row_count: int | None = None
    error_message: str | None = None
    uploaded_by: str = ""
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
