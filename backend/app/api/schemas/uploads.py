"""Upload ingestion request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import UploadStatus


class UploadQueuedResponse(BaseModel):
    """Returned as soon as an upload is stored and queued for parsing."""

    upload_id: UUID
    status: UploadStatus = UploadStatus.QUEUED


class UploadSummary(BaseModel):
    """One entry of the recent-uploads list."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    original_name: str
    size_bytes: int
    sha256: str
    uploaded_at: datetime
    status: UploadStatus


class UploadDetail(UploadSummary):
    """Full ledger entry for one upload."""

    mime: str
    uploaded_by: str | None
    parse_error: str | None
    row_count: int | None
    parsed_at: datetime | None


class SheetSummary(BaseModel):
    sheet_name: str
    row_count: int = Field(..., ge=0)


class ParsedRowOut(BaseModel):
    sheet_name: str
    row_index: int
    row: dict[str, Any]


class ParsedRowPage(BaseModel):
    """One page of parsed rows, ordered by (sheet_name, row_index)."""

    data: list[ParsedRowOut]
    total: int
    offset: int
    limit: int
