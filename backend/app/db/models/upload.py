"""
Upload: the ledger row for one submitted workbook.

Tracks where the original bytes live, their digest, who submitted them,
and the parse lifecycle:

    queued ──► parsed
       │
       └────► failed   (parse error or cancellation; reason in parse_error)

Rows are never deleted by the ingestion code; retention is handled elsewhere.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.constants import UploadStatus
from app.db.models.base import Base, generate_uuid, utcnow


class Upload(Base):
    __tablename__ = "uploads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)

    # ── File identity ─────────────────────────
    original_name: Mapped[str] = mapped_column(String(500), nullable=False)
    stored_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    mime: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # ── Submission ────────────────────────────
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    # ── Parse lifecycle ───────────────────────
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UploadStatus.QUEUED.value, index=True
    )
    parse_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    task_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    row_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    parsed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Relationships ─────────────────────────
    rows = relationship(
        "ParsedRow",
        back_populates="upload",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Upload {self.id} {self.original_name} status={self.status} size={self.size_bytes}>"
