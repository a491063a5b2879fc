"""
Database session management.

Provides the async SQLAlchemy engine, the session factory and the
``get_db`` dependency used by every endpoint via ``Depends()``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from investor_portal.core.config import settings


def build_engine(database_url: str, use_sqlite: bool) -> AsyncEngine:
    """Create the async engine for PostgreSQL or in-memory SQLite."""
    if use_sqlite:
        # StaticPool shares one in-memory database across all connections;
        # without it every connection would see its own empty database.
        from sqlalchemy.pool import StaticPool

        sqlite_engine = create_async_engine(
            database_url,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # SQLite ignores FK constraints unless asked.  aiosqlite wraps a sync
        # connection, so the listener goes on the sync engine.
        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL, settings.USE_SQLITE)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # Attributes must stay readable after commit(); a lazy reload would need
    # sync I/O, which async sessions cannot do.
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a request-scoped async session."""
    async with AsyncSessionLocal() as session:
        yield session
