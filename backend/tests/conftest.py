"""
Shared fixtures for the ingestion test suite.

Tests run without Postgres, Redis or a Celery worker:
  - the database is a per-test SQLite file (aiosqlite) built from ORM metadata
  - uploads land in a per-test temp directory
  - the background dispatcher/canceller are replaced with recorders;
    tests await `run_parse` directly to play the worker's part
"""

from __future__ import annotations

import io
import os
from typing import Any, AsyncGenerator, Callable

# Must be set before app settings are imported anywhere
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "test")

import httpx
import pytest
import pytest_asyncio
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.deps import (
    get_db,
    get_parse_canceller,
    get_parse_dispatcher,
    get_session_factory,
    get_upload_store,
)
from app.db.models import Base
from app.ingestion.storage import UploadStore
from app.main import app


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests with no external services")


# ═══════════════════════════════════════════════════════════
#  Database
# ═══════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test with every table created."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ingest.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ═══════════════════════════════════════════════════════════
#  Storage & workbooks
# ═══════════════════════════════════════════════════════════

@pytest.fixture
def upload_dir(tmp_path) -> str:
    return str(tmp_path / "uploads")


@pytest.fixture
def store(upload_dir) -> UploadStore:
    return UploadStore(upload_dir)


def build_workbook(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Build an .xlsx in memory: {sheet_name: [header_row, *data_rows]}."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_workbook() -> Callable[[dict[str, list[list[Any]]]], bytes]:
    return build_workbook


@pytest.fixture
def two_sheet_workbook() -> bytes:
    """Sheet1 with 6 data rows, Sheet2 with 4 data rows."""
    sheet1 = [["ticker", "quantity", "price"]] + [
        [f"TCK{i}", i * 10, 100.5 + i] for i in range(6)
    ]
    sheet2 = [["account", "balance"]] + [[f"ACC{i}", 1000 * i] for i in range(4)]
    return build_workbook({"Sheet1": sheet1, "Sheet2": sheet2})


# ═══════════════════════════════════════════════════════════
#  HTTP client
# ═══════════════════════════════════════════════════════════

class Recorder:
    """Stands in for the Celery dispatch/cancel callables."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def __call__(self, *args):
        self.calls.append(args)
        if self.error is not None:
            raise self.error
        return args[-1] if args else None


@pytest.fixture
def dispatcher() -> Recorder:
    return Recorder()


@pytest.fixture
def canceller() -> Recorder:
    return Recorder()


@pytest_asyncio.fixture
async def client(session_factory, store, dispatcher, canceller) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_upload_store] = lambda: store
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_parse_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_parse_canceller] = lambda: canceller

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def xlsx_upload(data: bytes, filename: str = "holdings.xlsx") -> dict:
    """Multipart `files=` payload for the upload endpoint."""
    return {"file": (filename, data, XLSX_MIME)}
