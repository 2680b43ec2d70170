"""Parser for US Social Security Administration baby-name files.

Format: ``name,gender,count`` with no header row, one file per year
(``yob2023.txt``). The year is taken from the filename.

    Emma,F,15581
    Liam,M,19659
"""

import asyncio
import csv
import io
import logging
from collections.abc import AsyncIterator
from typing import BinaryIO

from namestats.application.interfaces.name_parser import NameParser, ParserMetadata, RecordStream
from namestats.domain.entities.name_record import Record, RowError
from namestats.domain.exceptions import FileValidationError, NormalizationError
from namestats.domain.normalizer import (
    extract_year,
    normalize_gender,
    normalize_record,
    parse_count,
)

logger = logging.getLogger(__name__)

EXPECTED_FIELDS = 3
VALIDATE_MAX_LINES = 10


class USSSAParser(NameParser):
    """Reads the national SSA ``yobYYYY.txt`` files."""

    _METADATA = ParserMetadata(
        source_id="US",
        name="US Social Security Administration",
        description="Headerless name,gender,count rows; year taken from yobYYYY.txt",
        version="1.0",
    )

    @property
    def metadata(self) -> ParserMetadata:
        return self._METADATA

    def validate(self, source: BinaryIO) -> None:
        """Check the first lines for three fields, a known gender and an integer count."""
        text = io.TextIOWrapper(source, encoding="utf-8-sig", newline="")
        checked = 0
        try:
            for line_num, row in enumerate(csv.reader(text), start=1):
                if line_num > VALIDATE_MAX_LINES:
                    break
                if not row or not "".join(row).strip():
                    continue
                if len(row) != EXPECTED_FIELDS:
                    raise FileValidationError(
                        f"line {line_num}: expected {EXPECTED_FIELDS} fields, got {len(row)}"
                    )
                try:
                    normalize_gender(row[1])
                    parse_count(row[2])
                except NormalizationError as exc:
                    raise FileValidationError(f"line {line_num}: {exc}") from exc
                checked += 1
        except (UnicodeDecodeError, csv.Error) as exc:
            raise FileValidationError(f"error reading file: {exc}") from exc
        finally:
            text.detach()

        if checked == 0:
            raise FileValidationError("file is empty")

    def parse(
        self,
        source: BinaryIO,
        *,
        filename: str,
        cancel: asyncio.Event | None = None,
    ) -> RecordStream:
        year = extract_year(filename)
        logger.debug("Parsing %s as US SSA data for %d", filename, year)
        return RecordStream(self._rows(source, year), cancel=cancel)

    async def _rows(self, source: BinaryIO, year: int) -> AsyncIterator[Record | RowError]:
        text = io.TextIOWrapper(source, encoding="utf-8-sig", newline="")
        try:
            for line_num, row in enumerate(csv.reader(text), start=1):
                if not row or not "".join(row).strip():
                    continue
                if len(row) != EXPECTED_FIELDS:
                    yield RowError(
                        line_num, f"expected {EXPECTED_FIELDS} fields, got {len(row)}"
                    )
                    continue
                name, gender, raw_count = row
                try:
                    yield normalize_record(year, name, gender, parse_count(raw_count))
                except NormalizationError as exc:
                    yield RowError(line_num, str(exc), exc.field)
        except (UnicodeDecodeError, csv.Error) as exc:
            raise FileValidationError(f"error reading file: {exc}") from exc
        finally:
            text.detach()
