"""Abstract interface (port) for raw dataset file storage."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import BinaryIO


class FileStorage(ABC):
    """Port for storing uploaded source files — implemented in the infrastructure layer.

    Paths are opaque strings produced by ``save``; callers never build them.
    """

    @abstractmethod
    async def save(self, dataset_id: str, filename: str, content: bytes | BinaryIO) -> str:
        """Persist a file for a dataset and return its storage path."""
        ...

    @abstractmethod
    def load(self, path: str) -> AbstractAsyncContextManager[BinaryIO]:
        """Open a stored file for reading.

        Usage:
            async with storage.load(path) as stream:
                parser.validate(stream)

        Raises:
            StoredFileNotFoundError: the path does not exist.
            StorageError: the backend could not be read.
        """
        ...

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Remove a stored file. Returns False if it was already gone."""
        ...

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a stored file exists."""
        ...
