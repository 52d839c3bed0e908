"""
Parsed-row repository: writes and reads the parsed_rows table.

Writes are upserts on (upload_id, sheet_name, row_index) so parsing the same
upload twice leaves one row per key.  The caller owns the transaction.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.parsed_row import ParsedRow

_KEY_COLUMNS = ["upload_id", "sheet_name", "row_index"]


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported on dialect '{dialect}'")


async def upsert_rows(
    db: AsyncSession,
    rows: list[dict[str, Any]],
    *,
    chunk_size: int = 1000,
) -> int:
    """
    Insert or replace parsed rows.

    Each item needs upload_id, sheet_name, row_index and row_json.
    Returns the number of rows written.
    """
    if not rows:
        return 0

    insert = _insert_for(db)
    for start in range(0, len(rows), chunk_size):
        chunk = rows[start:start + chunk_size]
        stmt = insert(ParsedRow).values(chunk)
        stmt = stmt.on_conflict_do_update(
            index_elements=_KEY_COLUMNS,
            set_={"row_json": stmt.excluded.row_json},
        )
        await db.execute(stmt)

    await db.flush()
    return len(rows)


async def list_rows(
    db: AsyncSession,
    upload_id: uuid.UUID,
    *,
    sheet_name: str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> list[ParsedRow]:
    """Rows for one upload ordered by sheet then row index."""
    stmt = select(ParsedRow).where(ParsedRow.upload_id == upload_id)
    if sheet_name is not None:
        stmt = stmt.where(ParsedRow.sheet_name == sheet_name)
    stmt = (
        stmt.order_by(ParsedRow.sheet_name, ParsedRow.row_index)
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_rows(
    db: AsyncSession,
    upload_id: uuid.UUID,
    *,
    sheet_name: str | None = None,
) -> int:
    """Total rows for an upload (optionally one sheet)."""
    stmt = select(func.count()).select_from(ParsedRow).where(ParsedRow.upload_id == upload_id)
    if sheet_name is not None:
        stmt = stmt.where(ParsedRow.sheet_name == sheet_name)
    result = await db.execute(stmt)
    return int(result.scalar_one())


async def count_rows_by_sheet(db: AsyncSession, upload_id: uuid.UUID) -> dict[str, int]:
    """{sheet_name: row_count} for one upload."""
    stmt = (
        select(ParsedRow.sheet_name, func.count())
        .where(ParsedRow.upload_id == upload_id)
        .group_by(ParsedRow.sheet_name)
        .order_by(ParsedRow.sheet_name)
    )
    result = await db.execute(stmt)
    return {sheet: int(count) for sheet, count in result.all()}
