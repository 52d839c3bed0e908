"""Shared constants and enums used across the application."""

from enum import StrEnum


class UploadStatus(StrEnum):
    """Lifecycle status of an uploaded workbook."""

    QUEUED = "queued"
    PARSED = "parsed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not UploadStatus.QUEUED


class MimeType(StrEnum):
    """MIME types the content sniffer can report."""

    XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    ZIP = "application/zip"
    CFB = "application/x-cfb"
    PDF = "application/pdf"
    PNG = "image/png"
    JPEG = "image/jpeg"
    GIF = "image/gif"
    GZIP = "application/gzip"
    OCTET_STREAM = "application/octet-stream"


XLSX_EXTENSION = ".xlsx"

CANCELLED_REASON = "cancelled"

DISPATCH_FAILED_REASON = "could not queue parse"

STALE_REASON = "parse did not finish"
