"""Domain-specific exceptions — framework-independent.

Every failure the ingestion pipeline can hit is classified where it is
raised: ``PermanentError`` needs a human fix (re-upload, configuration) and is
never retried, ``TransientError`` is assumed to heal and is retried with
backoff. Exceptions outside this hierarchy count as transient.
"""


class IngestionError(Exception):
    """Base class for classified ingestion failures."""

    permanent: bool = False


class PermanentError(IngestionError):
    """A failure that retrying cannot fix."""

    permanent = True


class TransientError(IngestionError):
    """A failure that may succeed on a later attempt."""

    permanent = False


def is_permanent(exc: BaseException) -> bool:
    """Return True if *exc* must not be retried."""
    return isinstance(exc, IngestionError) and exc.permanent


# ── Lookup errors ────────────────────────────────────────────────────


class EntityNotFoundError(PermanentError):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class DatasetNotFoundError(EntityNotFoundError):
    def __init__(self, dataset_id: str):
        super().__init__("Dataset", dataset_id)


class JobNotFoundError(EntityNotFoundError):
    def __init__(self, job_id: str):
        super().__init__("Job", job_id)


class DuplicateEntityError(Exception):
    """Raised when attempting to create a duplicate entity."""

    def __init__(self, entity_type: str, field: str, value: str):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(f"{entity_type} with {field}='{value}' already exists")


class ActiveJobExistsError(DuplicateEntityError):
    """A dataset already has a queued or running job."""

    def __init__(self, dataset_id: str):
        super().__init__("Active job", "dataset_id", dataset_id)


# ── Permanent ingestion failures ─────────────────────────────────────


class ParserNotFoundError(PermanentError):
    """No parser is registered for the source identifier."""

    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"no parser registered for source: {source_id}")


class InvalidFilenameError(PermanentError):
    """Metadata required by the parser cannot be derived from the filename."""


class FileValidationError(PermanentError):
    """The file failed the parser's structural check."""


class BatchValidationError(PermanentError):
    """Staged records failed validation; nothing was committed."""

    def __init__(self, invalid_rows: int, rejected_rows: int, samples: list[str] | None = None):
        self.invalid_rows = invalid_rows
        self.rejected_rows = rejected_rows
        self.samples = samples or []
        message = (
            f"batch rejected: {invalid_rows} invalid staged row(s), "
            f"{rejected_rows} unparseable row(s)"
        )
        if self.samples:
            message += ": " + "; ".join(self.samples)
        super().__init__(message)


class MalformedJobError(PermanentError):
    """The job payload lacks what its kind requires."""


class UnknownJobKindError(PermanentError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"unknown job kind: {kind}")


class UploadRejectedError(PermanentError):
    """An uploaded file was refused before any record was created."""


# ── Transient ingestion failures ─────────────────────────────────────


class StorageError(TransientError):
    """The file store could not be read or written."""


class StoredFileNotFoundError(StorageError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"file not found in storage: {path}")


class ParseCancelledError(TransientError):
    """The parse was stopped by a cancellation signal."""


# ── Row-level ────────────────────────────────────────────────────────


class NormalizationError(ValueError):
    """A single field value could not be normalized."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)
