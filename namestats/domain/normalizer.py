"""Pure normalization helpers shared by every source parser.

All functions are stateless and idempotent: feeding a normalized value back in
returns it unchanged. Invalid input raises ``NormalizationError`` naming the
offending field; callers decide whether that skips a row or fails a file.
"""

import re
from pathlib import PurePath

from namestats.domain.entities.name_record import Record
from namestats.domain.exceptions import InvalidFilenameError, NormalizationError

MIN_YEAR = 1800
MAX_YEAR = 2100
MIN_COUNT = 1
MAX_NAME_LENGTH = 100

_GENDER_TOKENS: dict[str, str] = {
    "M": "M",
    "MALE": "M",
    "1": "M",
    "BOY": "M",
    "F": "F",
    "FEMALE": "F",
    "2": "F",
    "GIRL": "F",
}

_NAME_CHARS = re.compile(r"^(?:[^\W\d_]|[ '\-])+$")
_COUNT_DIGITS = re.compile(r"\d+", re.ASCII)
_WHITESPACE = re.compile(r"\s+")
_YEAR_IN_NAME = re.compile(r"(?<!\d)(\d{4})(?!\d)")


def normalize_gender(value: str) -> str:
    """Map a raw gender token to ``"M"`` or ``"F"``.

    Accepts M/F, Male/Female, 1/2 and Boy/Girl in any case.
    """
    token = (value or "").strip()
    if not token:
        raise NormalizationError("gender", "gender cannot be empty")
    canonical = _GENDER_TOKENS.get(token.upper())
    if canonical is None:
        raise NormalizationError(
            "gender",
            f"invalid gender value: {token!r} (expected M, F, Male, Female, 1 or 2)",
        )
    return canonical


def normalize_name(value: str) -> str:
    """Trim and validate a given name.

    Inner whitespace runs collapse to a single space. Only letters, spaces,
    hyphens and apostrophes are allowed.
    """
    name = _WHITESPACE.sub(" ", (value or "").strip())
    if not name:
        raise NormalizationError("name", "name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise NormalizationError(
            "name", f"name too long: {len(name)} characters (max: {MAX_NAME_LENGTH})"
        )
    if not _NAME_CHARS.match(name) or not any(ch.isalpha() for ch in name):
        raise NormalizationError("name", f"name contains invalid characters: {name!r}")
    return name


def validate_year(year: int) -> int:
    if isinstance(year, bool) or not isinstance(year, int):
        raise NormalizationError("year", f"year must be an integer, got {year!r}")
    if year < MIN_YEAR or year > MAX_YEAR:
        raise NormalizationError(
            "year", f"year {year} outside allowed range {MIN_YEAR}-{MAX_YEAR}"
        )
    return year


def validate_count(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise NormalizationError("count", f"count must be an integer, got {count!r}")
    if count < MIN_COUNT:
        raise NormalizationError("count", f"count {count} is less than minimum {MIN_COUNT}")
    return count


def parse_count(raw: str) -> int:
    """Parse a textual count such as ``"15581"`` into a validated integer."""
    text = (raw or "").strip()
    if not _COUNT_DIGITS.fullmatch(text):
        raise NormalizationError("count", f"invalid count value: {text!r}")
    return validate_count(int(text))


def extract_year(filename: str) -> int:
    """Pull the statistics year out of a filename (``yob2023.txt`` → 2023)."""
    stem = PurePath(filename).stem
    for match in _YEAR_IN_NAME.finditer(stem):
        year = int(match.group(1))
        if MIN_YEAR <= year <= MAX_YEAR:
            return year
    raise InvalidFilenameError(f"invalid filename format: no valid year in {filename!r}")


def normalize_record(year: int, name: str, gender: str, count: int) -> Record:
    """Validate and normalize every field of one observation."""
    return Record(
        year=validate_year(year),
        name=normalize_name(name),
        gender=normalize_gender(gender),
        count=validate_count(count),
    )
