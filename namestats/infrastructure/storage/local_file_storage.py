"""Local filesystem storage for uploaded dataset files.

Storage layout:
    <storage_path>/<dataset_id>/original<ext>
"""

import logging
import re
import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import BinaryIO

from namestats.application.interfaces.file_storage import FileStorage
from namestats.domain.exceptions import StorageError, StoredFileNotFoundError

logger = logging.getLogger(__name__)


def _sanitise(name: str, max_len: int = 80) -> str:
    """Replace non-word characters with underscores and truncate."""
    return re.sub(r"[^\w\-]", "_", name)[:max_len].strip("_") or "unnamed"


def _suffix(filename: str) -> str:
    """Lower-cased extension of *filename* (with the dot), or empty."""
    suffix = Path(filename).suffix.lower()
    return suffix if re.fullmatch(r"\.\w{1,10}", suffix) else ""


class LocalFileStorage(FileStorage):
    """Infrastructure adapter for local file storage."""

    def __init__(self, storage_path: str):
        self._root = Path(storage_path)
        self._root.mkdir(parents=True, exist_ok=True)

    async def save(self, dataset_id: str, filename: str, content: bytes | BinaryIO) -> str:
        """Store a dataset's file as ``<storage_path>/<dataset_id>/original<ext>``."""
        dataset_dir = self._root / _sanitise(dataset_id)
        dest_path = dataset_dir / f"original{_suffix(filename)}"

        try:
            dataset_dir.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                dest_path.write_bytes(content)
            else:
                with dest_path.open("wb") as out:
                    shutil.copyfileobj(content, out)
        except OSError as exc:
            raise StorageError(f"could not write {dest_path}: {exc}") from exc

        logger.info("Stored file: %s (%d bytes)", dest_path, dest_path.stat().st_size)
        return str(dest_path)

    @asynccontextmanager
    async def load(self, path: str) -> AsyncIterator[BinaryIO]:
        file_path = Path(path)
        try:
            handle = file_path.open("rb")
        except FileNotFoundError as exc:
            raise StoredFileNotFoundError(path) from exc
        except OSError as exc:
            raise StorageError(f"could not open {path}: {exc}") from exc

        try:
            yield handle
        finally:
            handle.close()

    async def delete(self, path: str) -> bool:
        """Delete a stored file from disk.

        Returns True if successfully deleted, False if not found. The emptied
        dataset directory is removed as well.
        """
        file_path = Path(path)
        if not file_path.exists():
            return False

        file_path.unlink(missing_ok=True)
        if not any(file_path.parent.iterdir()):
            file_path.parent.rmdir()
        logger.info("Deleted file from disk: %s", path)
        return True

    async def exists(self, path: str) -> bool:
        return Path(path).is_file()
