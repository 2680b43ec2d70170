"""Abstract interface (port) for per-source name statistics parsers."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import BinaryIO

from namestats.domain.entities.name_record import Record, RowError
from namestats.domain.exceptions import ParseCancelledError

# Rejected rows beyond this are counted but not kept.
MAX_KEPT_ROW_ERRORS = 100


@dataclass(frozen=True)
class ParserMetadata:
    """Descriptive information about a registered parser."""

    source_id: str      # e.g. ISO 3166-1 alpha-2 country code "US"
    name: str
    description: str
    version: str


class RecordStream:
    """Lazy, cancellable stream of records from a single parse.

    Wraps an async iterator that yields either a ``Record`` or a ``RowError``.
    Records are handed to the consumer one at a time; row errors are counted on
    the stream and skipped so the parse keeps going. Nothing is read ahead, so
    the consumer's pace bounds memory use.
    """

    def __init__(
        self,
        rows: AsyncIterator[Record | RowError],
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._rows = rows
        self._cancel = cancel
        self.errors: list[RowError] = []
        self.rejected_count = 0
        self.records_read = 0

    def __aiter__(self) -> "RecordStream":
        return self

    async def __anext__(self) -> Record:
        while True:
            if self._cancel is not None and self._cancel.is_set():
                await self.aclose()
                raise ParseCancelledError(
                    f"parse cancelled after {self.records_read} record(s)"
                )
            item = await self._rows.__anext__()
            if isinstance(item, RowError):
                self.rejected_count += 1
                if len(self.errors) < MAX_KEPT_ROW_ERRORS:
                    self.errors.append(item)
                continue
            self.records_read += 1
            return item

    async def aclose(self) -> None:
        closer = getattr(self._rows, "aclose", None)
        if closer is not None:
            await closer()


class NameParser(ABC):
    """Port for turning one source's raw file into normalized records."""

    @property
    @abstractmethod
    def metadata(self) -> ParserMetadata:
        ...

    @abstractmethod
    def validate(self, source: BinaryIO) -> None:
        """Cheap structural check on the first rows of the file.

        Consumes part of *source*; open a fresh handle for ``parse``.

        Raises:
            FileValidationError: the file does not look like this source's format.
        """
        ...

    @abstractmethod
    def parse(
        self,
        source: BinaryIO,
        *,
        filename: str,
        cancel: asyncio.Event | None = None,
    ) -> RecordStream:
        """Start a lazy parse of *source*.

        Args:
            source: Binary file object positioned at the start of the file.
            filename: Original upload name; parsers may derive metadata from it.
            cancel: When set, the stream stops with ``ParseCancelledError``.

        Raises:
            InvalidFilenameError: required metadata is missing from *filename*.
        """
        ...
