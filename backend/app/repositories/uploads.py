"""
Upload ledger repository: all data access for the uploads table.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit

Status transitions are conditional UPDATEs (`WHERE status = 'queued'`),
so a terminal status can never be overwritten by a late or duplicate call.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import UploadStatus
from app.db.models.upload import Upload


async def record_upload(
    db: AsyncSession,
    *,
    upload_id: uuid.UUID,
    original_name: str,
    stored_path: str,
    mime: str,
    size_bytes: int,
    sha256: str,
    uploaded_by: str | None = None,
    task_id: str | None = None,
) -> Upload:
    """Insert a new ledger row in the `queued` state."""
    upload = Upload(
        id=upload_id,
        original_name=original_name,
        stored_path=stored_path,
        mime=str(mime),
        size_bytes=size_bytes,
        sha256=sha256,
        uploaded_by=uploaded_by,
        uploaded_at=datetime.now(timezone.utc),
        status=UploadStatus.QUEUED.value,
        task_id=task_id,
    )
    db.add(upload)
    await db.flush()
    return upload


async def get_upload(db: AsyncSession, upload_id: uuid.UUID) -> Upload | None:
    """Fetch one ledger row by primary key."""
    return await db.get(Upload, upload_id)


async def list_recent_uploads(db: AsyncSession, *, limit: int = 200) -> list[Upload]:
    """Most recent uploads first."""
    stmt = select(Upload).order_by(Upload.uploaded_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def mark_parsed(db: AsyncSession, upload_id: uuid.UUID, *, row_count: int) -> bool:
    """
    Transition queued → parsed.

    Re-parsing an already parsed upload refreshes row_count/parsed_at.
    Returns True when the upload ended up parsed by this call.
    """
    now = datetime.now(timezone.utc)
    stmt = (
        update(Upload)
        .where(
            Upload.id == upload_id,
            Upload.status.in_([UploadStatus.QUEUED.value, UploadStatus.PARSED.value]),
        )
        .values(
            status=UploadStatus.PARSED.value,
            parse_error=None,
            row_count=row_count,
            parsed_at=now,
        )
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount > 0


async def mark_failed(db: AsyncSession, upload_id: uuid.UUID, reason: str) -> bool:
    """
    Transition queued → failed with a reason.

    Returns False (and changes nothing) when the upload is already terminal.
    """
    stmt = (
        update(Upload)
        .where(Upload.id == upload_id, Upload.status == UploadStatus.QUEUED.value)
        .values(status=UploadStatus.FAILED.value, parse_error=reason)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount > 0


async def lock_upload(db: AsyncSession, upload_id: uuid.UUID) -> Upload | None:
    """
    Re-read a ledger row with a row lock (SELECT ... FOR UPDATE).

    Used inside the row-write transaction so a concurrent cancellation
    either lands before the write or waits for it.
    """
    stmt = (
        select(Upload)
        .where(Upload.id == upload_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def fail_stale_queued(db: AsyncSession, *, queued_before: datetime, reason: str) -> int:
    """
    Fail every upload still queued that was submitted before `queued_before`.

    Returns how many uploads were transitioned.
    """
    stmt = (
        update(Upload)
        .where(
            Upload.status == UploadStatus.QUEUED.value,
            Upload.uploaded_at < queued_before,
        )
        .values(status=UploadStatus.FAILED.value, parse_error=reason)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount
