"""Unit tests for keystone/infrastructure/database/repository.py.

The session factory is replaced by ``fake_database`` so these tests cover
statement construction, session selection and error translation without a
store. Behavior against a real database is covered by the integration
suite.
"""

from typing import Any

import pytest
import pytest_check
from pytest_mock import MockerFixture, MockType
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from keystone.core.exceptions import ErrorKind, KeystoneError
from keystone.infrastructure.database.models import User
from keystone.infrastructure.database.query_options import QueryOptions
from keystone.infrastructure.database.repository import BaseRepository


class _NoteBase(DeclarativeBase):
    pass


class Note(_NoteBase):
    """Model without a ``deleted_at`` column."""

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True)


def _storage_failure() -> OperationalError:
    return OperationalError("SELECT", {}, Exception("connection lost"))


@pytest.fixture
def repository(fake_database: Any) -> BaseRepository[User]:
    return BaseRepository(fake_database, User, default_order_by=User.created_at)


@pytest.fixture
def rows(mock_session: MockType, mocker: MockerFixture) -> list[User]:
    users = [User(id=1, email="a@example.com"), User(id=2, email="b@example.com")]
    result = mocker.MagicMock()
    result.all.return_value = users
    mock_session.scalars.return_value = result
    return users


@pytest.mark.unit
class TestConstruction:
    def test_defaults(self, fake_database: Any) -> None:
        repository = BaseRepository(fake_database, User)

        pytest_check.equal(repository.table_name, "users")
        pytest_check.equal(repository.resource_name, "users")
        pytest_check.is_(repository.id_column, User.id)
        pytest_check.is_(repository.default_order_by, User.id)

    def test_explicit_columns(self, repository: BaseRepository[User]) -> None:
        assert repository.default_order_by is User.created_at


@pytest.mark.unit
class TestFindAll:
    async def test_returns_rows_from_read_session(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        rows: list[User],
    ) -> None:
        result = await repository.find_all()

        assert result == rows
        assert fake_database.reads == 1
        assert fake_database.transactions == 0

    async def test_orders_newest_first_by_default(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        await repository.find_all()

        statement = str(mock_session.scalars.await_args.args[0])
        assert "ORDER BY users.created_at DESC" in statement
        assert "LIMIT" in statement
        assert "OFFSET" in statement

    async def test_ascending_sort_order(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        await repository.find_all(QueryOptions(sort_order="asc"))

        statement = str(mock_session.scalars.await_args.args[0])
        assert "ORDER BY users.created_at ASC" in statement

    async def test_sort_by_is_ignored(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        await repository.find_all(QueryOptions(sort_by="email"))

        statement = str(mock_session.scalars.await_args.args[0])
        assert "ORDER BY users.created_at DESC" in statement

    async def test_filters_and_where_become_predicates(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        await repository.find_all(
            QueryOptions(
                where=User.name.is_not(None), filters={"email": "a@example.com"}
            )
        )

        statement = str(mock_session.scalars.await_args.args[0])
        assert "users.name IS NOT NULL" in statement
        assert "users.email = :email_1" in statement

    async def test_unknown_filter_field_is_skipped_with_warning(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
        log_records: list[dict[str, Any]],
    ) -> None:
        await repository.find_all(QueryOptions(filters={"nickname": "x"}))

        statement = str(mock_session.scalars.await_args.args[0])
        assert "nickname" not in statement
        warnings = [r for r in log_records if r["level"].name == "WARNING"]
        assert "non-existent field 'nickname'" in warnings[0]["message"]

    async def test_invalid_pagination_never_reaches_storage(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
    ) -> None:
        with pytest.raises(KeystoneError) as exc_info:
            await repository.find_all(QueryOptions(limit=500))

        assert exc_info.value.kind is ErrorKind.VALIDATION
        assert fake_database.reads == 0

    async def test_joins_caller_session(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mocker: MockerFixture,
    ) -> None:
        caller_session = mocker.AsyncMock(spec=AsyncSession)
        result = mocker.MagicMock()
        result.all.return_value = []
        caller_session.scalars.return_value = result

        await repository.find_all(session=caller_session)

        caller_session.scalars.assert_awaited_once()
        assert fake_database.reads == 0

    async def test_storage_failure_becomes_database_error(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
    ) -> None:
        failure = _storage_failure()
        mock_session.scalars.side_effect = failure

        with pytest.raises(KeystoneError) as exc_info:
            await repository.find_all()

        error = exc_info.value
        pytest_check.is_(error.kind, ErrorKind.DATABASE)
        pytest_check.equal(error.message, "Failed to fetch records")
        pytest_check.equal(error.context["table"], "users")
        pytest_check.is_(error.cause, failure)


@pytest.mark.unit
class TestFindAllPaginated:
    async def test_combines_page_and_count(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        mock_session.scalar.return_value = 12

        result = await repository.find_all_paginated(QueryOptions(page=1, limit=2))

        assert result.data == rows
        pytest_check.equal(result.pagination.total, 12)
        pytest_check.equal(result.pagination.total_pages, 6)
        pytest_check.is_true(result.pagination.has_next_page)
        pytest_check.is_false(result.pagination.has_previous_page)

    async def test_count_failure_propagates(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        mock_session.scalar.side_effect = _storage_failure()

        with pytest.raises(KeystoneError, match="Failed to count records"):
            await repository.find_all_paginated()


@pytest.mark.unit
class TestFindById:
    async def test_found(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        user = User(id=5, email="x@example.com")
        mock_session.scalar.return_value = user

        assert await repository.find_by_id(5) is user
        assert await repository.exists(5) is True

    async def test_missing_returns_none(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        assert await repository.find_by_id(5) is None
        assert await repository.exists(5) is False

    async def test_or_throw_raises_not_found(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        with pytest.raises(KeystoneError) as exc_info:
            await repository.find_by_id_or_throw(5, "User")

        error = exc_info.value
        assert error.kind is ErrorKind.NOT_FOUND
        assert error.message == "User not found"
        assert dict(error.context) == {"resource": "User", "identifier": 5}

    async def test_or_throw_defaults_to_table_name(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        with pytest.raises(KeystoneError, match="users not found"):
            await repository.find_by_id_or_throw(5)

    async def test_failure_carries_identifier(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.side_effect = _storage_failure()

        with pytest.raises(KeystoneError) as exc_info:
            await repository.find_by_id(9)

        assert exc_info.value.message == "Failed to fetch record with id 9"
        assert exc_info.value.context["id"] == 9


@pytest.mark.unit
class TestCreate:
    async def test_inserts_in_transaction(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mock_session: MockType,
    ) -> None:
        user = User(id=1, email="new@example.com")
        mock_session.scalar.return_value = user

        created = await repository.create({"email": "new@example.com"})

        assert created is user
        assert fake_database.commits == 1
        statement = str(mock_session.scalar.await_args.args[0])
        assert statement.startswith("INSERT INTO users")
        assert "RETURNING" in statement

    async def test_no_row_returned(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        with pytest.raises(KeystoneError) as exc_info:
            await repository.create({"email": "new@example.com"})

        assert exc_info.value.kind is ErrorKind.DATABASE
        assert "no record returned" in exc_info.value.message

    async def test_constraint_violation_rolls_back(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mock_session: MockType,
    ) -> None:
        mock_session.scalar.side_effect = IntegrityError(
            "INSERT", {}, Exception("UNIQUE constraint failed")
        )

        with pytest.raises(KeystoneError) as exc_info:
            await repository.create({"email": "dup@example.com"})

        error = exc_info.value
        pytest_check.equal(error.message, "Failed to create record")
        pytest_check.equal(error.context["data"], {"email": "dup@example.com"})
        pytest_check.is_instance(error.cause, IntegrityError)
        pytest_check.equal(fake_database.rollbacks, 1)

    async def test_create_many_is_one_transaction(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mock_session: MockType,
    ) -> None:
        users = [User(id=1, email="a@example.com"), User(id=2, email="b@example.com")]
        mock_session.scalar.side_effect = users

        created = await repository.create_many(
            [{"email": "a@example.com"}, {"email": "b@example.com"}]
        )

        assert created == users
        assert fake_database.commits == 1
        assert mock_session.scalar.await_count == 2

    async def test_create_many_failure_rolls_back_batch(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mock_session: MockType,
    ) -> None:
        mock_session.scalar.side_effect = [
            User(id=1, email="a@example.com"),
            _storage_failure(),
        ]

        with pytest.raises(KeystoneError) as exc_info:
            await repository.create_many(
                [{"email": "a@example.com"}, {"email": "b@example.com"}]
            )

        assert exc_info.value.message == "Failed to create multiple records"
        assert exc_info.value.context["count"] == 2
        assert fake_database.rollbacks == 1
        assert fake_database.commits == 0


@pytest.mark.unit
class TestUpdateAndDelete:
    async def test_update_sets_updated_at(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        user = User(id=3, email="u@example.com", name="New")
        mock_session.scalar.return_value = user

        updated = await repository.update(3, {"name": "New"})

        assert updated is user
        statement = mock_session.scalar.await_args.args[0]
        assert "updated_at" in str(statement)
        assert statement.compile().params["name"] == "New"

    async def test_update_missing_returns_none(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        assert await repository.update(3, {"name": "New"}) is None

    async def test_update_or_throw(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        with pytest.raises(KeystoneError) as exc_info:
            await repository.update_or_throw(3, {"name": "New"}, "User")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    async def test_update_failure_context(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.side_effect = _storage_failure()

        with pytest.raises(KeystoneError) as exc_info:
            await repository.update(3, {"name": "New"})

        assert exc_info.value.message == "Failed to update record with id 3"
        assert exc_info.value.context["data"] == {"name": "New"}

    @pytest.mark.parametrize(("row", "expected"), [((4,), True), (None, False)])
    async def test_delete(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        mocker: MockerFixture,
        row: tuple[int] | None,
        expected: bool,
    ) -> None:
        result = mocker.MagicMock()
        result.first.return_value = row
        mock_session.execute.return_value = result

        assert await repository.delete(4) is expected
        assert str(mock_session.execute.await_args.args[0]).startswith(
            "DELETE FROM users"
        )

    async def test_delete_or_throw(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        mocker: MockerFixture,
    ) -> None:
        result = mocker.MagicMock()
        result.first.return_value = None
        mock_session.execute.return_value = result

        with pytest.raises(KeystoneError, match="User not found"):
            await repository.delete_or_throw(4, "User")

    async def test_soft_delete_marks_row(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        user = User(id=4, email="s@example.com")
        mock_session.scalar.return_value = user

        assert await repository.soft_delete(4) is user
        assert "deleted_at" in str(mock_session.scalar.await_args.args[0])

    async def test_soft_delete_requires_column(
        self, fake_database: Any, mock_session: MockType
    ) -> None:
        repository = BaseRepository(fake_database, Note)  # type: ignore[type-var]

        with pytest.raises(KeystoneError) as exc_info:
            await repository.soft_delete(1)

        assert exc_info.value.kind is ErrorKind.CONFIGURATION
        mock_session.scalar.assert_not_awaited()


@pytest.mark.unit
class TestQueries:
    async def test_count_defaults_to_zero(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        assert await repository.count() == 0

    async def test_count_with_filters(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = 3

        assert await repository.count(filters={"name": "Ada"}) == 3
        assert "users.name = :name_1" in str(mock_session.scalar.await_args.args[0])

    async def test_filter_by(
        self,
        repository: BaseRepository[User],
        mock_session: MockType,
        rows: list[User],
    ) -> None:
        assert await repository.filter_by(name="Ada") == rows

    async def test_find_one_by(
        self, repository: BaseRepository[User], mock_session: MockType
    ) -> None:
        mock_session.scalar.return_value = None

        assert await repository.find_one_by(email="none@example.com") is None
        assert "LIMIT" in str(mock_session.scalar.await_args.args[0])

    async def test_execute_query_translates_errors(
        self, repository: BaseRepository[User]
    ) -> None:
        async def broken(session: Any) -> None:
            raise _storage_failure()

        with pytest.raises(KeystoneError, match="Report failed"):
            await repository.execute_query(broken, "Report failed")

    async def test_execute_query_keeps_structured_errors(
        self, repository: BaseRepository[User]
    ) -> None:
        async def rejects(session: Any) -> None:
            raise KeystoneError.validation("Bad report")

        with pytest.raises(KeystoneError) as exc_info:
            await repository.execute_query(rejects)

        assert exc_info.value.kind is ErrorKind.VALIDATION

    async def test_with_transaction(
        self,
        repository: BaseRepository[User],
        fake_database: Any,
        mock_session: MockType,
    ) -> None:
        async def work(session: Any) -> str:
            assert session is mock_session
            return "ok"

        assert await repository.with_transaction(work) == "ok"
        assert fake_database.commits == 1

    async def test_with_transaction_failure(
        self, repository: BaseRepository[User], fake_database: Any
    ) -> None:
        async def work(session: Any) -> None:
            raise RuntimeError("broken")

        with pytest.raises(KeystoneError, match="Transaction failed"):
            await repository.with_transaction(work)

        assert fake_database.rollbacks == 1
