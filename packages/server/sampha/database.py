"""Async SQLAlchemy engine and request-scoped sessions.

SQLite (aiosqlite) runs on a single shared connection with foreign keys
enforced; PostgreSQL (asyncpg) gets a regular connection pool.
"""
import os
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from sampha.config import settings
from sampha.logging_config import get_logger

logger = get_logger(__name__)

SQLITE_PREFIX = "sqlite+aiosqlite:///"


def _enable_sqlite_pragmas(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Engine configured for the backend named in ``url``."""
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_pragmas)
        return engine
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,
    )


engine: AsyncEngine = create_engine_for(settings.database_url, settings.database_echo)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def _sqlite_path(url: str) -> str:
    return url[len(SQLITE_PREFIX):] if url.startswith(SQLITE_PREFIX) else ""


async def init_db_engine() -> None:
    """Create the SQLite data directory if needed and check connectivity."""
    if settings.is_sqlite:
        path = _sqlite_path(settings.database_url)
        directory = os.path.dirname(path)
        if directory and path != ":memory:":
            os.makedirs(directory, exist_ok=True)
        async with engine.begin() as conn:
            if path != ":memory:":
                await conn.execute(text("PRAGMA journal_mode=WAL"))
        logger.info(f"Using SQLite database at {path or settings.database_url}")
    else:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connected to PostgreSQL")


async def ping_database() -> bool:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        return False


async def close_db_engine() -> None:
    await engine.dispose()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async session.

    The whole request runs in one transaction: committed when the handler
    returns, rolled back when it raises. Handlers still call
    ``session.commit()`` before publishing change events so that listeners
    never see an event for uncommitted rows.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
