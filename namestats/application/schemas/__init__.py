from .datasets import DatasetResponse, ReprocessRequest, UploadDatasetResponse
from .jobs import JobListResponse, JobResponse
from .parsers import ParserListResponse, ParserResponse

__all__ = [
    "DatasetResponse",
    "ReprocessRequest",
    "UploadDatasetResponse",
    "JobListResponse",
    "JobResponse",
    "ParserListResponse",
    "ParserResponse",
]
