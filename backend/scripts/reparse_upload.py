#!/usr/bin/env python3
"""
Re-run the parse of a stored upload synchronously (no Celery).

Rows are upserted on (upload_id, sheet_name, row_index), so running this
against an already parsed upload leaves the row counts unchanged.

Usage:
    cd backend
    python -m scripts.reparse_upload <upload_id> [<upload_id> ...]
"""

import asyncio
import sys

from app.core.logging import setup_logging
from app.db.session import make_session_factory
from app.ingestion.parse import run_parse


async def reparse(upload_ids: list[str]) -> int:
    """Parse each upload in turn; return the number that failed."""
    factory, engine = make_session_factory()
    failures = 0
    try:
        for upload_id in upload_ids:
            result = await run_parse(upload_id, factory)
            print(f"  {upload_id}: {result.status} rows={result.rows_written} {result.rows_by_sheet}")
            if result.error:
                print(f"    error: {result.error}")
                failures += 1
    finally:
        await engine.dispose()
    return failures


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        print(__doc__)
        sys.exit(0)

    setup_logging("INFO")
    failures = asyncio.run(reparse(sys.argv[1:]))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
