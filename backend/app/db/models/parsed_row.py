"""
ParsedRow: one worksheet row from a parsed upload.

Keyed by (upload_id, sheet_name, row_index) so a re-parse of the same
upload overwrites rows in place instead of duplicating them.
`row_json` is the row flattened to {header: value}, with None for blank cells.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.models.base import Base, JSONType


class ParsedRow(Base):
    __tablename__ = "parsed_rows"

    upload_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("uploads.id", ondelete="CASCADE"), primary_key=True
    )
    sheet_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    row_index: Mapped[int] = mapped_column(Integer, primary_key=True)

    row_json: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    upload = relationship("Upload", back_populates="rows")

    def __repr__(self) -> str:
        return f"<ParsedRow {self.upload_id} {self.sheet_name}[{self.row_index}]>"
