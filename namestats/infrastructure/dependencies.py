"""FastAPI dependency injection — wires infrastructure to application layer.

Long-lived components (parser registry, file storage, worker pool) are built
once in the application lifespan and kept on ``app.state``.
"""

from fastapi import HTTPException, Request

from namestats.application.interfaces.file_storage import FileStorage
from namestats.application.services import IngestionService, ParserRegistry, WorkerPool
from namestats.config import Settings, get_settings
from namestats.infrastructure.database.session import async_session_factory
from namestats.infrastructure.storage.local_file_storage import LocalFileStorage


def build_file_storage(settings: Settings) -> FileStorage:
    """Storage backend selected by ``storage_type``."""
    if settings.storage_type == "s3":
        from namestats.infrastructure.storage.s3_file_storage import S3FileStorage

        return S3FileStorage(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url or None,
        )
    return LocalFileStorage(storage_path=settings.storage_path)


def get_parser_registry(request: Request) -> ParserRegistry:
    return request.app.state.parser_registry


def get_worker_pool(request: Request) -> WorkerPool | None:
    """The running pool, or None when workers are disabled or not started."""
    return getattr(request.app.state, "worker_pool", None)


def get_ingestion_service(request: Request) -> IngestionService:
    """Provides an IngestionService bound to the app's storage and registry."""
    state = request.app.state
    if not hasattr(state, "file_storage"):
        raise HTTPException(status_code=503, detail="Ingestion is not initialised")

    settings = get_settings()
    return IngestionService(
        session_factory=getattr(state, "session_factory", async_session_factory),
        storage=state.file_storage,
        registry=state.parser_registry,
        max_upload_bytes=settings.max_upload_size_mb * 1024 * 1024,
        max_attempts=settings.worker_max_retries,
    )
