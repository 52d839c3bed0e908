"""
Workbook upload endpoints: submit, list, inspect, and query parsed rows.

POST /upload-xlsx answers with status "queued" before any parsing happens;
the parse runs as a background task once the response is on its way.
"""

from __future__ import annotations

import asyncio
import uuid
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import (
    ParseCanceller,
    ParseDispatcher,
    get_db,
    get_parse_canceller,
    get_parse_dispatcher,
    get_session_factory,
    get_submitter,
    get_upload_store,
)
from app.api.schemas.uploads import (
    ParsedRowOut,
    ParsedRowPage,
    SheetSummary,
    UploadDetail,
    UploadQueuedResponse,
    UploadSummary,
)
from app.core.config import settings
from app.core.constants import CANCELLED_REASON, DISPATCH_FAILED_REASON, UploadStatus
from app.core.logging import get_logger
from app.db.models.upload import Upload
from app.ingestion.errors import (
    InvalidTransitionError,
    MissingFileError,
    PayloadTooLargeError,
    StorageError,
    UnsupportedMediaTypeError,
)
from app.ingestion.parse import record_failure
from app.ingestion.sniffer import validate_spreadsheet
from app.ingestion.storage import UploadStore
from app.repositories import parsed_rows as row_repository
from app.repositories import uploads as upload_repository

logger = get_logger(__name__)

router = APIRouter(tags=["Uploads"])


async def _read_limited(file: UploadFile, limit: int) -> bytes:
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise PayloadTooLargeError(
            f"File too large (max {limit // (1024 * 1024)} MB)",
            limit_bytes=limit,
        )
    return data


async def _enqueue_parse(
    dispatch: ParseDispatcher,
    session_factory: async_sessionmaker[AsyncSession],
    upload_id: str,
    task_id: str,
) -> None:
    """Hand the upload to the parse queue; fail it if the queue refuses."""
    try:
        await asyncio.to_thread(dispatch, upload_id, task_id)
    except Exception as exc:
        logger.error("Could not queue parse", upload_id=upload_id, task_id=task_id, error=str(exc))
        try:
            await record_failure(session_factory, uuid.UUID(upload_id), DISPATCH_FAILED_REASON)
        except Exception as ledger_exc:
            logger.error("Could not record dispatch failure", upload_id=upload_id, error=str(ledger_exc))


async def _require_upload(db: AsyncSession, upload_id: UUID) -> Upload:
    upload = await upload_repository.get_upload(db, upload_id)
    if upload is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    return upload


async def _cancel_queued(db: AsyncSession, upload: Upload) -> None:
    if UploadStatus(upload.status).is_terminal:
        raise InvalidTransitionError(f"Upload already {upload.status}", upload_id=str(upload.id))
    if not await upload_repository.mark_failed(db, upload.id, CANCELLED_REASON):
        # Lost a race with the parse task
        await db.refresh(upload)
        raise InvalidTransitionError(f"Upload already {upload.status}", upload_id=str(upload.id))


# ─── Submit ───────────────────────────────────────────────
@router.post("/upload-xlsx", response_model=UploadQueuedResponse)
async def upload_xlsx(
    background_tasks: BackgroundTasks,
    file: UploadFile | None = File(default=None),
    submitter: str | None = Depends(get_submitter),
    db: AsyncSession = Depends(get_db),
    store: UploadStore = Depends(get_upload_store),
    dispatch: ParseDispatcher = Depends(get_parse_dispatcher),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> UploadQueuedResponse:
    """
    Store an .xlsx workbook and queue it for parsing.

    1. Sniff the bytes (415 unless it is a spreadsheet container)
    2. Write the file under a fresh ID and record a `queued` ledger row
    3. Return immediately; the parse is dispatched after the response
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="file is required")

    try:
        data = await _read_limited(file, settings.MAX_UPLOAD_BYTES)
        mime = validate_spreadsheet(data, file.filename)
    except MissingFileError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    except PayloadTooLargeError as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from None
    except UnsupportedMediaTypeError as exc:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(exc)) from None

    try:
        stored = await asyncio.to_thread(store.save, data)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="upload failed"
        ) from None

    task_id = str(uuid.uuid4())
    try:
        await upload_repository.record_upload(
            db,
            upload_id=stored.upload_id,
            original_name=file.filename or f"{stored.upload_id}.xlsx",
            stored_path=stored.path,
            mime=mime,
            size_bytes=stored.size_bytes,
            sha256=stored.sha256,
            uploaded_by=submitter,
            task_id=task_id,
        )
        # Commit before the background dispatch can observe the row
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        store.discard(stored.path)
        logger.error("Ledger write failed", upload_id=str(stored.upload_id), error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="upload failed"
        ) from None

    background_tasks.add_task(_enqueue_parse, dispatch, session_factory, str(stored.upload_id), task_id)

    logger.info(
        "Upload queued",
        upload_id=str(stored.upload_id),
        original_name=file.filename,
        size_bytes=stored.size_bytes,
        uploaded_by=submitter,
    )
    return UploadQueuedResponse(upload_id=stored.upload_id, status=UploadStatus.QUEUED)


# ─── List ─────────────────────────────────────────────────
@router.get("/uploads", response_model=list[UploadSummary])
async def list_uploads(db: AsyncSession = Depends(get_db)) -> list[UploadSummary]:
    """Most recent uploads first, capped at UPLOAD_LIST_LIMIT."""
    uploads = await upload_repository.list_recent_uploads(db, limit=settings.UPLOAD_LIST_LIMIT)
    return [UploadSummary.model_validate(u) for u in uploads]


# ─── Detail ───────────────────────────────────────────────
@router.get("/uploads/{upload_id}", response_model=UploadDetail)
async def get_upload(upload_id: UUID, db: AsyncSession = Depends(get_db)) -> UploadDetail:
    """Full ledger entry, including the failure reason if any."""
    upload = await _require_upload(db, upload_id)
    return UploadDetail.model_validate(upload)


@router.get("/uploads/{upload_id}/sheets", response_model=list[SheetSummary])
async def list_upload_sheets(upload_id: UUID, db: AsyncSession = Depends(get_db)) -> list[SheetSummary]:
    """Row counts per parsed sheet."""
    await _require_upload(db, upload_id)
    counts = await row_repository.count_rows_by_sheet(db, upload_id)
    return [SheetSummary(sheet_name=name, row_count=count) for name, count in counts.items()]


@router.get("/uploads/{upload_id}/rows", response_model=ParsedRowPage)
async def list_upload_rows(
    upload_id: UUID,
    sheet: str | None = Query(default=None, max_length=255),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.ROWS_PAGE_DEFAULT, ge=1, le=settings.ROWS_PAGE_MAX),
    db: AsyncSession = Depends(get_db),
) -> ParsedRowPage:
    """Parsed rows for an upload, optionally for one sheet, paged by offset/limit."""
    await _require_upload(db, upload_id)
    total = await row_repository.count_rows(db, upload_id, sheet_name=sheet)
    rows = await row_repository.list_rows(db, upload_id, sheet_name=sheet, offset=offset, limit=limit)
    return ParsedRowPage(
        data=[
            ParsedRowOut(sheet_name=r.sheet_name, row_index=r.row_index, row=r.row_json)
            for r in rows
        ],
        total=total,
        offset=offset,
        limit=limit,
    )


# ─── Cancel ───────────────────────────────────────────────
@router.post("/uploads/{upload_id}/cancel", response_model=UploadDetail)
async def cancel_upload(
    upload_id: UUID,
    db: AsyncSession = Depends(get_db),
    cancel: ParseCanceller = Depends(get_parse_canceller),
) -> UploadDetail:
    """Stop a queued parse; the upload ends up failed with reason "cancelled"."""
    upload = await _require_upload(db, upload_id)
    try:
        await _cancel_queued(db, upload)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from None
    await db.commit()
    cancel(upload.task_id)

    await db.refresh(upload)
    logger.info("Upload cancelled", upload_id=str(upload_id), task_id=upload.task_id)
    return UploadDetail.model_validate(upload)
