"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import AsyncGenerator, Callable

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.db.session import async_session
from app.db.session import get_db as _get_db
from app.ingestion.storage import UploadStore

ParseDispatcher = Callable[[str, str], object]
ParseCanceller = Callable[[str | None], None]


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session."""
    async for session in _get_db():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request session."""
    return async_session


def get_upload_store() -> UploadStore:
    """Filesystem store for original workbook bytes."""
    return UploadStore(settings.UPLOAD_DIR)


def get_parse_dispatcher() -> ParseDispatcher:
    """Callable that enqueues a background parse: (upload_id, task_id)."""
    from app.tasks.parsing_tasks import dispatch_parse

    return dispatch_parse


def get_parse_canceller() -> ParseCanceller:
    """Callable that revokes a queued parse by task ID."""
    from app.tasks.parsing_tasks import cancel_parse

    return cancel_parse


async def get_submitter(
    x_user: str | None = Header(default=None, alias="x-user"),
) -> str | None:
    """
    Submitter attribution from the `x-user` header.

    Not authenticated: the header is recorded as-is for internal tooling.
    """
    if x_user is None:
        return None
    value = x_user.strip()
    return value[:320] or None
