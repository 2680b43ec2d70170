"""Shared fixtures: a throwaway SQLite database per test and a local file store."""

import os
import tempfile

# The session module builds its engine at import time; point it at SQLite
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'namestats-test.db')}"
)
os.environ.setdefault("STORAGE_PATH", os.path.join(tempfile.gettempdir(), "namestats-test-uploads"))

import pytest
import pytest_asyncio

from namestats.application.services import IngestionService, build_default_registry
from namestats.infrastructure.database.base import Base
from namestats.infrastructure.database.session import build_engine, build_session_factory
from namestats.infrastructure.storage.local_file_storage import LocalFileStorage


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'namestats.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(storage_path=str(tmp_path / "uploads"))


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def ingestion(session_factory, storage, registry):
    return IngestionService(
        session_factory=session_factory,
        storage=storage,
        registry=registry,
        max_upload_bytes=1024 * 1024,
        max_attempts=3,
    )


