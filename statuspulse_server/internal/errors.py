"""Errors raised by the collector's ingestion and query paths."""


class IngestError(Exception):
    """Base class for failures that reject a snapshot before persistence."""


class Unauthorized(IngestError):
    """Missing or unknown host credential."""


class Malformed(IngestError):
    """Snapshot is missing required fields or carries invalid values."""


class StorageUnavailable(IngestError):
    """Transient storage failure; nothing was persisted."""
