"""Name statistics ingestion: a persisted job queue feeding per-source parsers."""

__version__ = "0.1.0"
