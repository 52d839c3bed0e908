"""
Async SQLAlchemy session factory.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _engine_kwargs(url: str) -> dict:
    """Pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=(settings.APP_ENV == "development"),
    **_engine_kwargs(settings.DATABASE_URL),
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def make_session_factory() -> tuple[async_sessionmaker[AsyncSession], object]:
    """
    Create a fresh engine + session factory.

    Celery workers call `asyncio.run()` per task, so they cannot share the
    module-level engine (its pool is bound to the event loop it was used on).
    The caller owns the returned engine and must `await engine.dispose()`.
    """
    fresh_engine = create_async_engine(settings.DATABASE_URL, echo=False)
    factory = async_sessionmaker(fresh_engine, class_=AsyncSession, expire_on_commit=False)
    return factory, fresh_engine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an async DB session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
