"""Database connection and session management."""

from __future__ import annotations

import logging
import os
import time

from sqlalchemy import event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from dutylog.core.config import get_settings
from dutylog.core.structured_logging import log_json

settings = get_settings()
logger = logging.getLogger(__name__)


def async_database_url(url: str) -> str:
    """Map a plain driver URL onto its asyncio driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def configure_engine(engine: AsyncEngine) -> AsyncEngine:
    """Attach dialect-specific connection hooks and slow query logging."""
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
            # event_tags / profile cascades rely on FK enforcement
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    threshold_ms = float(os.getenv("SLOW_QUERY_MS", "0") or "0")
    if threshold_ms > 0:

        @event.listens_for(engine.sync_engine, "before_cursor_execute")
        def _before_cursor_execute(
            conn, cursor, statement, parameters, context, executemany
        ) -> None:
            context._query_start_time = time.perf_counter()

        @event.listens_for(engine.sync_engine, "after_cursor_execute")
        def _after_cursor_execute(
            conn, cursor, statement, parameters, context, executemany
        ) -> None:
            start = getattr(context, "_query_start_time", None)
            if start is None:
                return

            duration_ms = (time.perf_counter() - start) * 1000
            if duration_ms < threshold_ms:
                return

            max_len = 2000
            stmt = str(statement)
            if len(stmt) > max_len:
                stmt = stmt[: max_len - 3] + "..."

            log_json(
                logger,
                logging.WARNING,
                "slow_query",
                duration_ms=round(duration_ms, 2),
                statement=stmt,
            )

    return engine


_url = async_database_url(settings.database_url)

# NullPool for test databases to avoid connection pool issues between event loops
engine = configure_engine(
    create_async_engine(
        _url,
        echo=False,
        poolclass=NullPool if "test" in (make_url(_url).database or "") else None,
    )
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """Get database session dependency.

    Yields:
        AsyncSession: Database session, committed when the request succeeds
        and rolled back when it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
