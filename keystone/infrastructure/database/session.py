"""Async database engine and session factory management.

The application works with a single engine and a single session factory.
The session factory is the ``Database`` handle passed to repositories and
transaction helpers:

- ``async with database() as session`` opens a plain session for reads
- ``async with database.begin() as session`` opens a session inside a
  transaction that commits on normal exit and rolls back on error

Both are created lazily by ``_DatabaseManager`` and disposed of on
application shutdown.
"""

import threading
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keystone.core.config import get_settings
from keystone.infrastructure.constants import (
    COMMAND_TIMEOUT_SECONDS,
    POOL_RECYCLE_SECONDS,
)

# Transactional store handle shared by repositories and transaction helpers
type Database = async_sessionmaker[AsyncSession]


def create_database_engine(database_url: str | None = None) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Args:
        database_url: Optional database URL. If not provided, uses the
                     configured database URL from settings.

    Returns:
        AsyncEngine: Configured async engine instance.
    """
    db_config = get_settings().database_config
    url = database_url or db_config.database_url

    engine_options: dict[str, Any] = {"echo": db_config.echo}
    if url.startswith("sqlite"):
        # SQLite uses a single-file store without a server-side pool
        engine_options["connect_args"] = {"timeout": COMMAND_TIMEOUT_SECONDS}
    else:
        engine_options.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_pre_ping=db_config.pool_pre_ping,
            pool_recycle=POOL_RECYCLE_SECONDS,
            connect_args={
                "server_settings": {"jit": "off"},
                "command_timeout": COMMAND_TIMEOUT_SECONDS,
            },
        )

    engine = create_async_engine(url, **engine_options)
    logger.info(
        "Created database engine - dialect: {}, pool_size: {}, max_overflow: {}",
        engine.dialect.name,
        db_config.pool_size,
        db_config.max_overflow,
    )
    return engine


def create_database(engine: AsyncEngine) -> Database:
    """Create a session factory bound to ``engine``.

    Objects stay usable after commit so repositories can return rows once
    their session has been closed.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class _DatabaseManager:
    """Holds the process-wide engine and session factory."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._database: Database | None = None
        self._lock = threading.Lock()

    def get_engine(self) -> AsyncEngine:
        if self._engine is None:
            with self._lock:
                # Double-checked locking pattern
                if self._engine is None:
                    self._engine = create_database_engine()
        return self._engine

    def get_database(self) -> Database:
        if self._database is None:
            engine = self.get_engine()
            with self._lock:
                if self._database is None:
                    self._database = create_database(engine)
                    logger.info("Created async session factory")
        return self._database

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
        self.reset()

    def reset(self) -> None:
        """Forget the current engine without disposing it."""
        self._engine = None
        self._database = None


_db_manager = _DatabaseManager()


def get_engine() -> AsyncEngine:
    """Get or create the global async engine instance."""
    return _db_manager.get_engine()


def get_database() -> Database:
    """Get or create the global session factory."""
    return _db_manager.get_database()


async def close_database() -> None:
    """Dispose of the engine and its pooled connections.

    This should be called during application shutdown.
    """
    await _db_manager.close()


async def check_database_connection() -> tuple[bool, str | None]:
    """Check if the database answers a trivial query.

    Returns:
        tuple[bool, str | None]: A tuple containing:
            - bool: True if connection successful, False otherwise
            - str | None: Error message if connection failed, None if successful

    Example:
        is_healthy, error = await check_database_connection()
        if not is_healthy:
            logger.error("Database unhealthy: {}", error)
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return False, str(e)
    return True, None
