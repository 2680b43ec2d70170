from .ingestion_service import IngestionService
from .job_processor import JobProcessor, next_retry_at, retry_delay
from .parser_registry import ParserRegistry, build_default_registry
from .worker_pool import WorkerPool

__all__ = [
    "IngestionService",
    "JobProcessor",
    "ParserRegistry",
    "WorkerPool",
    "build_default_registry",
    "next_retry_at",
    "retry_delay",
]
