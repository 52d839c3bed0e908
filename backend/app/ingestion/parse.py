"""
Workbook parse: turns a stored upload into parsed_rows.

Runs outside the request/response cycle (see app.tasks.parsing_tasks).
Steps:
    1. Load the ledger row (skip if it was cancelled / already failed)
    2. Flatten every worksheet with the XLSX extractor
    3. Stage rows for all sheets with zero-based per-sheet indexes
    4. Upsert them in ONE transaction and mark the upload parsed
On any exception the upload is marked failed with the message; the
exception is logged, never re-raised, because nobody is awaiting it.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.constants import CANCELLED_REASON, UploadStatus
from app.core.logging import get_logger
from app.ingestion.errors import UploadNotFoundError, WorkbookParseError
from app.processing.extractors.base import BaseExtractor
from app.processing.extractors.xlsx_extractor import XlsxExtractor
from app.repositories import parsed_rows as row_repository
from app.repositories import uploads as upload_repository

logger = get_logger(__name__)

SKIPPED = "skipped"


@dataclass
class ParseResult:
    """Outcome of one parse run."""

    upload_id: str
    status: str                       # UploadStatus value or "skipped"
    rows_written: int = 0
    rows_by_sheet: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "upload_id": self.upload_id,
            "status": self.status,
            "rows_written": self.rows_written,
            "rows_by_sheet": self.rows_by_sheet,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


def stage_rows(upload_id: uuid.UUID, sheets: dict[str, list[dict[str, Any]]]) -> list[dict[str, Any]]:
    """Key every flattened row by (upload_id, sheet_name, row_index)."""
    staged: list[dict[str, Any]] = []
    for sheet_name, records in sheets.items():
        for row_index, record in enumerate(records):
            staged.append({
                "upload_id": upload_id,
                "sheet_name": sheet_name,
                "row_index": row_index,
                "row_json": record,
            })
    return staged


def _reason(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


async def record_failure(
    session_factory: async_sessionmaker[AsyncSession],
    upload_id: uuid.UUID,
    reason: str,
) -> bool:
    """Mark the upload failed in its own transaction."""
    async with session_factory() as session:
        async with session.begin():
            return await upload_repository.mark_failed(session, upload_id, reason)


async def run_parse(
    upload_id: uuid.UUID | str,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    extractor: BaseExtractor | None = None,
    chunk_size: int | None = None,
    task_id: str | None = None,
    extract_in_thread: bool = True,
    passthrough: tuple[type[BaseException], ...] = (),
) -> ParseResult:
    """
    Parse one upload end to end.  Never raises, except for the exception
    types listed in `passthrough` (the caller settles the ledger for those).

    Safe to run again on an already parsed upload: rows are upserted on
    their key, so the row count per sheet stays the same.

    With `extract_in_thread=False` the workbook is read on the calling
    thread, so a signal-based timeout raised there interrupts the read
    itself instead of waiting for a worker thread to finish.
    """
    started = time.monotonic()
    try:
        upload_uuid = upload_id if isinstance(upload_id, uuid.UUID) else uuid.UUID(str(upload_id))
    except ValueError:
        logger.error("Parse failed, malformed upload id", upload_id=str(upload_id), task_id=task_id)
        return ParseResult(
            upload_id=str(upload_id),
            status=UploadStatus.FAILED,
            error="invalid upload id",
        )
    extractor = extractor or XlsxExtractor()
    chunk_size = chunk_size or settings.ROW_INSERT_CHUNK

    log = logger.bind(upload_id=str(upload_uuid), task_id=task_id)

    def _elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        # ── 1. Load ledger row ────────────────────
        async with session_factory() as session:
            upload = await upload_repository.get_upload(session, upload_uuid)
            if upload is None:
                raise UploadNotFoundError("upload not found", upload_id=str(upload_uuid))
            stored_path = upload.stored_path
            status = upload.status
            mime = upload.mime

        if status == UploadStatus.FAILED:
            log.info("Parse skipped, upload already failed")
            return ParseResult(upload_id=str(upload_uuid), status=SKIPPED, duration_ms=_elapsed())

        log.info("Parse started", stored_path=stored_path, status=status)

        if not extractor.supports_mime(mime):
            raise WorkbookParseError(f"No extractor for {mime}", upload_id=str(upload_uuid))

        # ── 2. Flatten workbook ───────────────────
        try:
            if extract_in_thread:
                sheets = await asyncio.to_thread(extractor.extract, stored_path)
            else:
                sheets = extractor.extract(stored_path)
        except passthrough:
            raise
        except Exception as exc:
            raise WorkbookParseError(_reason(exc), upload_id=str(upload_uuid)) from exc

        # ── 3. Stage rows ─────────────────────────
        staged = stage_rows(upload_uuid, sheets)
        rows_by_sheet = {sheet: len(records) for sheet, records in sheets.items()}

        # ── 4. Write rows + status atomically ─────
        async with session_factory() as session:
            async with session.begin():
                current = await upload_repository.lock_upload(session, upload_uuid)
                if current is None:
                    raise UploadNotFoundError("upload not found", upload_id=str(upload_uuid))
                if current.status == UploadStatus.FAILED:
                    log.info("Parse discarded, upload cancelled while parsing")
                    return ParseResult(
                        upload_id=str(upload_uuid),
                        status=SKIPPED,
                        duration_ms=_elapsed(),
                        error=current.parse_error or CANCELLED_REASON,
                    )

                written = await row_repository.upsert_rows(session, staged, chunk_size=chunk_size)
                await upload_repository.mark_parsed(session, upload_uuid, row_count=written)

        result = ParseResult(
            upload_id=str(upload_uuid),
            status=UploadStatus.PARSED,
            rows_written=written,
            rows_by_sheet=rows_by_sheet,
            duration_ms=_elapsed(),
        )
        log.info(
            "Parse finished",
            rows_written=written,
            rows_by_sheet=rows_by_sheet,
            duration_ms=result.duration_ms,
        )
        return result

    except UploadNotFoundError as exc:
        log.error("Parse failed, upload not found", error=str(exc))
        return ParseResult(
            upload_id=str(upload_uuid),
            status=UploadStatus.FAILED,
            duration_ms=_elapsed(),
            error=str(exc),
        )

    except passthrough:
        raise

    except Exception as exc:
        reason = _reason(exc)
        log.exception("Parse failed", error=reason)
        try:
            await record_failure(session_factory, upload_uuid, reason)
        except Exception as ledger_exc:
            log.error("Could not record parse failure", error=str(ledger_exc))
        return ParseResult(
            upload_id=str(upload_uuid),
            status=UploadStatus.FAILED,
            duration_ms=_elapsed(),
            error=reason,
        )
