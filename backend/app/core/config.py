"""
Pydantic Settings: centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ──────────────────────────────
    POSTGRES_USER: str = "advisor_user"
    POSTGRES_PASSWORD: str = "advisor_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "advisor_db"

    # Any SQLAlchemy async URL; takes precedence over the POSTGRES_* parts
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def DATABASE_URL_SYNC(self) -> str:
        """Sync URL for Alembic migrations (psycopg2)."""
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Upload storage ────────────────────────
    UPLOAD_DIR: str = "data/uploads"
    MAX_UPLOAD_BYTES: int = 20 * 1024 * 1024
    UPLOAD_LIST_LIMIT: int = 200

    # ── Parsed rows ───────────────────────────
    ROWS_PAGE_DEFAULT: int = 100
    ROWS_PAGE_MAX: int = 1000
    ROW_INSERT_CHUNK: int = 1000

    # ── Parse workers ─────────────────────────
    PARSE_WORKER_CONCURRENCY: int = 4
    PARSE_SOFT_TIME_LIMIT: int = 600   # seconds
    PARSE_TIME_LIMIT: int = 660
    # Uploads still queued after this long are failed by the stale sweep
    STALE_QUEUED_AFTER: int = 3600
    STALE_SWEEP_INTERVAL: int = 600

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}


settings = Settings()
