"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from fabrica.config.settings import Settings, get_settings
from fabrica.db.models.base import Base


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own transaction boundaries on SQLite.

    The sqlite3 driver opens transactions lazily and breaks SAVEPOINT,
    which slug retry and invitation reconciliation rely on. Disabling the
    driver's handling and emitting BEGIN ourselves restores it. Foreign
    keys are switched on so tenant deletion cascades as on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database URL."""
    kwargs: dict[str, Any] = {"echo": settings.DEBUG and settings.log_level == "DEBUG"}

    if settings.ENVIRONMENT == "test" and not settings.is_sqlite:
        kwargs["poolclass"] = NullPool
    elif not settings.is_sqlite:
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(settings.DATABASE_URL, **kwargs)
    if settings.is_sqlite:
        configure_sqlite_engine(engine)
    return engine


@lru_cache
def get_engine() -> AsyncEngine:
    """Get the process-wide engine, created on first use."""
    return build_engine(get_settings())


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to the process-wide engine."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(create_tables: bool = False) -> None:
    """Verify connectivity and optionally create tables.

    Called during application startup so the pool is ready before the
    first request. Table creation is for local runs; deployments use
    Alembic migrations.
    """
    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
        if create_tables:
            await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Release all pooled connections."""
    await get_engine().dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to inject database sessions.

    Usage:
        @router.get("/items")
        async def get_items(db: Annotated[AsyncSession, Depends(get_db)]):
            ...
    """
    async with get_session_factory()() as session:
        yield session
