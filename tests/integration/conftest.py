"""Fixtures for integration tests against a real SQLite store.

Each test gets its own database file under ``tmp_path``. The process-wide
engine is reset before and disposed of after every test so no connection
outlives the file it points at.
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from keystone.api.main import create_app
from keystone.core.config import Settings, get_settings
from keystone.infrastructure.database.base import Base
from keystone.infrastructure.database.session import (
    Database,
    _db_manager,
    close_database,
    get_database,
    get_engine,
)

type ClientFactory = Callable[[FastAPI], AsyncClient]


@pytest.fixture
async def database(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> AsyncGenerator[Database]:
    """A fresh schema in a per-test SQLite file."""
    monkeypatch.setenv(
        "DATABASE_CONFIG__DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path}/test.db"
    )
    get_settings.cache_clear()
    _db_manager.reset()

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_database()

    await close_database()


@pytest.fixture
def make_client() -> ClientFactory:
    def factory(app: FastAPI) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return factory


@pytest.fixture
async def app(database: Database) -> FastAPI:
    """Application with default settings bound to the test database."""
    return create_app()


@pytest.fixture
async def client(
    app: FastAPI, make_client: ClientFactory
) -> AsyncGenerator[AsyncClient]:
    async with make_client(app) as async_client:
        yield async_client


@pytest.fixture
def settings_factory(database: Database) -> Callable[..., Settings]:
    """Settings from the test environment with per-test overrides."""

    def factory(**overrides: object) -> Settings:
        return Settings(**overrides)

    return factory
