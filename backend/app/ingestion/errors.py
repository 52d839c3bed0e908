"""
Exception hierarchy for the upload ingestion path.

Everything inherits from IngestionError so callers can catch broadly or
narrowly.  Each exception carries the upload ID (when known) and optional
structured details for logging.

HTTP mapping (applied in the API layer):
    MissingFileError           400
    UploadNotFoundError        404
    InvalidTransitionError     409
    PayloadTooLargeError       413
    UnsupportedMediaTypeError  415
    StorageError               500
    WorkbookParseError         never surfaced; recorded on the ledger
"""

from __future__ import annotations


class IngestionError(Exception):
    """Base exception for all ingestion errors."""

    def __init__(
        self,
        message: str,
        *,
        upload_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.upload_id = upload_id
        self.details = details or {}
        super().__init__(message)


class MissingFileError(IngestionError):
    """The request carried no file, or an empty one."""
    pass


class UnsupportedMediaTypeError(IngestionError):
    """The uploaded bytes are not a spreadsheet container we accept."""

    def __init__(
        self,
        message: str = "Unsupported file type (expect .xlsx)",
        *,
        sniffed_mime: str | None = None,
        **kwargs,
    ) -> None:
        self.sniffed_mime = sniffed_mime
        super().__init__(message, **kwargs)


class PayloadTooLargeError(IngestionError):
    """The upload exceeds the configured size limit."""

    def __init__(
        self,
        message: str,
        *,
        limit_bytes: int = 0,
        **kwargs,
    ) -> None:
        self.limit_bytes = limit_bytes
        super().__init__(message, **kwargs)


class StorageError(IngestionError):
    """Writing the upload to durable storage failed."""
    pass


class UploadNotFoundError(IngestionError):
    """No ledger row exists for the given upload ID."""
    pass


class InvalidTransitionError(IngestionError):
    """A lifecycle transition was requested from a terminal state."""
    pass


class WorkbookParseError(IngestionError):
    """The stored workbook could not be read or flattened."""
    pass
