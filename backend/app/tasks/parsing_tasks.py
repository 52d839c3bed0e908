"""
Celery tasks: background workbook parsing.

The upload endpoint records the ledger row, answers the client, and only
then enqueues `parse_upload`.  Workers run with bounded concurrency
(see celeryconfig.worker_concurrency); a task can be cancelled by revoking
it and marking the upload failed, which the parse re-checks before writing.
No automatic retries: a failed parse needs a resubmission.

The workbook is read on the task's own thread so the soft time limit can
interrupt a slow read.  A hard time limit kills the worker process before
anything can touch the ledger; `sweep_stale_uploads` (run by celery beat)
fails uploads left `queued` past STALE_QUEUED_AFTER seconds.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from celery.exceptions import SoftTimeLimitExceeded

from app.core.config import settings
from app.core.constants import CANCELLED_REASON, STALE_REASON
from app.core.logging import get_logger
from app.db.session import make_session_factory
from app.ingestion.parse import ParseResult, record_failure, run_parse
from app.repositories import uploads as upload_repository
from app.tasks import celery_app

logger = get_logger("tasks.parsing")


async def _parse_with_fresh_engine(upload_id: str, task_id: str | None) -> ParseResult:
    """Run the parse on a per-call engine (each task gets its own event loop)."""
    factory, engine = make_session_factory()
    try:
        return await run_parse(
            upload_id,
            factory,
            task_id=task_id,
            extract_in_thread=False,
            passthrough=(SoftTimeLimitExceeded,),
        )
    finally:
        await engine.dispose()


async def _fail_with_fresh_engine(upload_id: str, reason: str) -> None:
    factory, engine = make_session_factory()
    try:
        await record_failure(factory, uuid.UUID(upload_id), reason)
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="app.tasks.parsing_tasks.parse_upload", max_retries=0)
def parse_upload(self, upload_id: str) -> dict:
    """Parse one stored upload into parsed_rows and settle its status."""
    task_log = logger.bind(task_id=self.request.id, upload_id=upload_id)
    task_log.info("Parse task started")

    try:
        result = asyncio.run(_parse_with_fresh_engine(upload_id, self.request.id))
    except SoftTimeLimitExceeded:
        task_log.error("Parse task hit its time limit")
        asyncio.run(_fail_with_fresh_engine(upload_id, "parse timed out"))
        return {"upload_id": upload_id, "status": "failed", "error": "parse timed out"}

    task_log.info(
        "Parse task finished",
        status=result.status,
        rows_written=result.rows_written,
        duration_ms=result.duration_ms,
    )
    return result.to_dict()


def dispatch_parse(upload_id: str, task_id: str) -> str:
    """Enqueue the parse for an upload under a pre-assigned task ID."""
    parse_upload.apply_async(args=[upload_id], task_id=task_id)
    logger.info("Parse task queued", upload_id=upload_id, task_id=task_id)
    return task_id


def cancel_parse(task_id: str | None) -> None:
    """Revoke a queued parse.  A parse already running notices the failed status."""
    if not task_id:
        return
    celery_app.control.revoke(task_id)
    logger.info("Parse task revoked", task_id=task_id, reason=CANCELLED_REASON)


async def _sweep_with_fresh_engine(max_age_seconds: int) -> int:
    factory, engine = make_session_factory()
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
    try:
        async with factory() as session:
            async with session.begin():
                return await upload_repository.fail_stale_queued(
                    session, queued_before=cutoff, reason=STALE_REASON
                )
    finally:
        await engine.dispose()


@celery_app.task(name="app.tasks.parsing_tasks.sweep_stale_uploads", max_retries=0)
def sweep_stale_uploads(max_age_seconds: int | None = None) -> int:
    """Fail uploads whose parse never settled (worker killed, message lost)."""
    max_age = max_age_seconds or settings.STALE_QUEUED_AFTER
    swept = asyncio.run(_sweep_with_fresh_engine(max_age))
    if swept:
        logger.warning("Stale uploads failed", count=swept, max_age_seconds=max_age)
    return swept
