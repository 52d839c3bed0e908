"""
Content-type sniffing for uploaded workbooks.

Looks at the leading bytes instead of trusting the client's Content-Type.
XLSX files are ZIP containers, so a ZIP signature is opened and classified
as a spreadsheet only when it carries the SpreadsheetML workbook part.
"""

from __future__ import annotations

import io
import zipfile

from app.core.constants import XLSX_EXTENSION, MimeType
from app.core.logging import get_logger
from app.ingestion.errors import MissingFileError, UnsupportedMediaTypeError

logger = get_logger(__name__)

# Leading-byte signature → MIME type (checked in order)
MAGIC_SIGNATURES: list[tuple[bytes, str]] = [
    (b"PK\x03\x04", MimeType.ZIP),
    (b"PK\x05\x06", MimeType.ZIP),    # empty archive
    (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", MimeType.CFB),
    (b"%PDF-", MimeType.PDF),
    (b"\x89PNG\r\n\x1a\n", MimeType.PNG),
    (b"\xff\xd8\xff", MimeType.JPEG),
    (b"GIF87a", MimeType.GIF),
    (b"GIF89a", MimeType.GIF),
    (b"\x1f\x8b", MimeType.GZIP),
]

ACCEPTED_MIMES = frozenset({MimeType.XLSX})

# Sniff results that say "some container" without saying which one
INCONCLUSIVE_MIMES = frozenset({MimeType.OCTET_STREAM, MimeType.ZIP})

_SPREADSHEETML_MAIN = "spreadsheetml.sheet.main+xml"


def _classify_zip(data: bytes) -> str:
    """Tell an XLSX workbook apart from any other ZIP archive."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
            if "xl/workbook.xml" in names:
                return MimeType.XLSX
            if "[Content_Types].xml" in names:
                content_types = archive.read("[Content_Types].xml").decode("utf-8", "ignore")
                if _SPREADSHEETML_MAIN in content_types:
                    return MimeType.XLSX
    except (zipfile.BadZipFile, KeyError, OSError) as exc:
        logger.debug("ZIP signature but unreadable archive", error=str(exc))
    return MimeType.ZIP


def sniff_mime(data: bytes) -> str:
    """Derive a MIME type from magic bytes; octet-stream when nothing matches."""
    for signature, mime in MAGIC_SIGNATURES:
        if data.startswith(signature):
            if mime == MimeType.ZIP:
                return _classify_zip(data)
            return mime
    return MimeType.OCTET_STREAM


def has_xlsx_extension(filename: str | None) -> bool:
    return bool(filename) and filename.lower().endswith(XLSX_EXTENSION)


def validate_spreadsheet(data: bytes, filename: str | None) -> str:
    """
    Accept `data` as a spreadsheet upload and return its sniffed MIME type.

    Accepted when the bytes sniff as XLSX, or when sniffing is inconclusive
    (generic octet-stream / bare ZIP) and the filename ends in `.xlsx`.
    Raises UnsupportedMediaTypeError otherwise.
    """
    if not data:
        raise MissingFileError("file is required")

    mime = sniff_mime(data)

    if mime in ACCEPTED_MIMES:
        return mime
    if mime in INCONCLUSIVE_MIMES and has_xlsx_extension(filename):
        logger.info("Inconclusive sniff accepted on extension", filename=filename, mime=mime)
        return mime

    logger.info("Upload rejected by content sniffing", filename=filename, mime=mime)
    raise UnsupportedMediaTypeError(sniffed_mime=mime, details={"filename": filename})
