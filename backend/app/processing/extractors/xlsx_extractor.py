"""
Excel worksheet flattening.

Every sheet is read header-first from its used range: the first row holding
a value supplies the keys, each following row becomes one {header: value}
dict with None for blank cells.  Blank rows and columns ahead of the table
are ignored, fully blank rows are dropped, so row indexes count data rows
only.

Header naming:
    - blank header cells become "__EMPTY", "__EMPTY_1", ...
    - repeated headers get "_1", "_2", ... suffixes
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Iterable

from openpyxl import load_workbook

from app.core.constants import MimeType
from app.core.logging import get_logger
from app.processing.extractors.base import BaseExtractor

logger = get_logger(__name__)

EMPTY_HEADER = "__EMPTY"


def build_headers(header_row: Iterable[Any]) -> list[str]:
    """Turn the first worksheet row into unique string keys."""
    headers: list[str] = []
    seen: dict[str, int] = {}
    empty_count = 0

    for cell in header_row:
        text = "" if cell is None else str(cell).strip()
        if not text:
            name = EMPTY_HEADER if empty_count == 0 else f"{EMPTY_HEADER}_{empty_count}"
            empty_count += 1
        else:
            name = text

        if name in seen:
            seen[name] += 1
            candidate = f"{name}_{seen[name]}"
            while candidate in seen:
                seen[name] += 1
                candidate = f"{name}_{seen[name]}"
            name = candidate
        seen.setdefault(name, 0)
        headers.append(name)

    return headers


def to_json_value(value: Any) -> Any:
    """Convert a cell value into something json.dumps accepts."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    return str(value)


def _first_value_index(values: list[Any]) -> int | None:
    return next((i for i, v in enumerate(values) if v is not None), None)


def flatten_rows(rows: Iterable[tuple[Any, ...]]) -> list[dict[str, Any]]:
    """
    Flatten raw worksheet tuples into row dicts.

    The header is the first row of the sheet's used range: blank rows above
    it and blank columns to its left are dropped, so a table starting at B3
    is keyed on B3's row.
    """
    table = [[to_json_value(v) for v in raw] for raw in rows]

    starts = [_first_value_index(values) for values in table]
    occupied = [i for i, start in enumerate(starts) if start is not None]
    if not occupied:
        return []
    first_row = occupied[0]
    first_col = min(starts[i] for i in occupied)

    headers = build_headers(table[first_row][first_col:])
    records: list[dict[str, Any]] = []

    for values in table[first_row + 1:]:
        values = values[first_col:]
        if all(v is None for v in values):
            continue
        # Cells past the last header have no key to live under
        values = values[: len(headers)]
        values += [None] * (len(headers) - len(values))
        records.append(dict(zip(headers, values)))

    return records


class XlsxExtractor(BaseExtractor):
    """Reads .xlsx workbooks with openpyxl (cached values, not formulas)."""

    def extract(self, filepath: str) -> dict[str, list[dict[str, Any]]]:
        workbook = load_workbook(filepath, read_only=True, data_only=True)
        try:
            sheets: dict[str, list[dict[str, Any]]] = {}
            for worksheet in workbook.worksheets:
                sheets[worksheet.title] = flatten_rows(worksheet.iter_rows(values_only=True))
                logger.debug(
                    "Sheet flattened",
                    sheet_name=worksheet.title,
                    rows=len(sheets[worksheet.title]),
                )
            return sheets
        finally:
            workbook.close()

    def supports_mime(self, mime: str) -> bool:
        return mime in (MimeType.XLSX, MimeType.ZIP, MimeType.OCTET_STREAM)
