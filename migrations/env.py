"""Alembic environment script for async database migrations.

The database URL comes from the application settings, so migrations run
against the same store as the API (PostgreSQL through asyncpg, or SQLite
through aiosqlite for local runs).
"""

import asyncio
import logging
from typing import Any

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from keystone.core.config import get_settings
from keystone.infrastructure.database import models  # noqa: F401 - registers tables
from keystone.infrastructure.database.base import Base

config = context.config

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a connection."""
    logger.info("Running migrations in offline mode")

    context.configure(
        url=get_settings().database_config.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        # SQLite cannot ALTER most constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations on a connection from a pool-less async engine."""
    logger.info("Running migrations in online mode with async engine")

    db_config = get_settings().database_config
    configuration: dict[str, Any] = {
        "sqlalchemy.url": db_config.database_url,
        "sqlalchemy.echo": db_config.echo,
    }

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
