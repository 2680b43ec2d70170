"""FastAPI application factory — hosts the ingestion worker pool."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.engine import make_url

from namestats.application.services import (
    JobProcessor,
    WorkerPool,
    build_default_registry,
)
from namestats.config import Settings, get_settings
from namestats.infrastructure.database import Base, engine
from namestats.infrastructure.database.batch_inserter import StagingBatchInserter
from namestats.infrastructure.database.session import async_session_factory
from namestats.infrastructure.dependencies import build_file_storage
from namestats.infrastructure.logging.log_config import setup_logging
from namestats.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


async def _create_postgres_database(database_url: str) -> None:
    """Issue ``CREATE DATABASE`` for the configured PostgreSQL database if absent.

    SQLite and other backends create their storage on first connect and are
    skipped. Failures are logged; ``create_all`` reports the real error later.
    """
    import asyncpg

    url = make_url(database_url)
    if url.get_backend_name() != "postgresql" or not url.database:
        return

    try:
        conn = await asyncpg.connect(
            host=url.host,
            port=url.port,
            user=url.username,
            password=url.password,
            database="postgres",
        )
    except (OSError, asyncpg.PostgresError) as exc:
        logger.warning("Cannot reach PostgreSQL to check database %r: %s", url.database, exc)
        return

    try:
        found = await conn.fetchval(
            "SELECT 1 FROM pg_database WHERE datname = $1", url.database
        )
        if not found:
            # Not allowed inside a transaction block; asyncpg runs it in autocommit
            await conn.execute(f'CREATE DATABASE "{url.database}"')
            logger.info("Created database %r", url.database)
    except asyncpg.PostgresError as exc:
        logger.warning("Could not create database %r: %s", url.database, exc)
    finally:
        await conn.close()


def _build_worker_pool(settings: Settings, registry, storage) -> WorkerPool:
    processor = JobProcessor(
        session_factory=async_session_factory,
        registry=registry,
        storage=storage,
        inserter=StagingBatchInserter(async_session_factory, settings.ingest_batch_size),
    )
    return WorkerPool(
        processor,
        concurrency=settings.worker_concurrency,
        poll_interval=settings.worker_poll_interval,
        shutdown_timeout=settings.worker_shutdown_timeout,
        abort_grace=settings.worker_abort_grace,
        stale_after=settings.worker_stale_after,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — create tables, wire the pipeline, run the workers."""
    settings = get_settings()
    setup_logging(settings)

    await _create_postgres_database(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    registry = build_default_registry()
    storage = build_file_storage(settings)
    app.state.session_factory = async_session_factory
    app.state.parser_registry = registry
    app.state.file_storage = storage
    logger.info("Parsers available: %s", ", ".join(registry.list()))

    pool = _build_worker_pool(settings, registry, storage)
    await pool.start()
    app.state.worker_pool = pool

    try:
        yield
    finally:
        await pool.stop()
        await engine.dispose()
        logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with the versioned API mounted under /api."""
    settings = get_settings()
    application = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )
    application.include_router(api_router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "namestats.main:app",
        host="0.0.0.0",
        port=8020,
        reload=get_settings().app_env == "development",
    )
