from .dataset import Dataset, DatasetStatus
from .job import Job, JobKind, JobStatus
from .name_record import Record, RowError

__all__ = [
    "Dataset",
    "DatasetStatus",
    "Job",
    "JobKind",
    "JobStatus",
    "Record",
    "RowError",
]
