"""Normalized name records flowing from a parser to the batch inserter."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Record:
    """A single normalized (year, name, gender, count) observation."""

    year: int
    name: str
    gender: str  # "M" or "F"
    count: int


@dataclass(frozen=True)
class RowError:
    """A source row that was skipped during parsing."""

    line: int
    message: str
    field: str | None = None

    def __str__(self) -> str:
        if self.field:
            return f"line {self.line}, field {self.field}: {self.message}"
        return f"line {self.line}: {self.message}"
