"""Fixtures for database-layer unit tests.

``fake_database`` stands in for the ``async_sessionmaker`` handle. Both
``database()`` and ``database.begin()`` yield the same mocked session, and
``begin()`` records whether each transaction committed or rolled back.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import pytest
from pytest_mock import MockerFixture, MockType
from sqlalchemy.ext.asyncio import AsyncSession


class FakeDatabase:
    """Session factory double tracking transaction outcomes."""

    def __init__(self, session: MockType) -> None:
        self.session = session
        self.commits = 0
        self.rollbacks = 0
        self.reads = 0

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[Any]:
        self.reads += 1
        yield self.session

    def __call__(self) -> Any:  # noqa: ANN401 - mirrors async_sessionmaker
        return self._read()

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[Any]:
        try:
            yield self.session
        except BaseException:
            self.rollbacks += 1
            raise
        self.commits += 1

    @property
    def transactions(self) -> int:
        return self.commits + self.rollbacks


@pytest.fixture
def mock_session(mocker: MockerFixture) -> MockType:
    """An AsyncSession mock whose query methods are awaitable."""
    return mocker.AsyncMock(spec=AsyncSession)


@pytest.fixture
def fake_database(mock_session: MockType) -> FakeDatabase:
    return FakeDatabase(mock_session)
