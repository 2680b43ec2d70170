from .batch_inserter import BatchInserter
from .dataset_repository import DatasetRepository
from .file_storage import FileStorage
from .job_repository import JobRepository
from .name_parser import NameParser, ParserMetadata, RecordStream

__all__ = [
    "BatchInserter",
    "DatasetRepository",
    "FileStorage",
    "JobRepository",
    "NameParser",
    "ParserMetadata",
    "RecordStream",
]
