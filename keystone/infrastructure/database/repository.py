"""Generic repository over one SQLAlchemy model.

``BaseRepository`` implements CRUD, paginated listing, counting and
existence checks for any model deriving from ``BaseModel``. Concrete
repositories pass their model, identifier column and default sort column
to the constructor and add entity-specific queries on top.

Every operation opens its own session from the ``Database`` factory
(writes inside ``begin()``) unless the caller passes a transaction-scoped
``session``, in which case the operation joins that transaction.

Failure policy:
- Storage failures are re-raised as Database-kind ``KeystoneError`` with
  the table, identifier and payload in the context and the original
  exception as ``cause``
- Errors that are already structured (e.g. pagination validation) pass
  through unchanged
- A missing row is reported as ``None`` (or ``False``); only the
  ``*_or_throw`` variants raise NotFound
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Mapping
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, Select, asc, desc, func, insert, select, update
from sqlalchemy import delete as sql_delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from keystone.core.exceptions import KeystoneError
from keystone.core.observability import trace_operation
from keystone.infrastructure.database import transactions
from keystone.infrastructure.database.base import BaseModel
from keystone.infrastructure.database.pagination import (
    create_paginated_result,
    normalize_pagination_options,
)
from keystone.infrastructure.database.query_options import (
    PaginatedResult,
    QueryOptions,
    SortOrder,
)
from keystone.infrastructure.database.session import Database


class BaseRepository[T: BaseModel]:
    """Generic CRUD repository bound to one table.

    Args:
        database: Session factory used to reach the store.
        model_class: The SQLAlchemy model class this repository manages.
        id_column: Identifier column, defaults to ``model_class.id``.
        default_order_by: Sort column for list queries, defaults to the
            identifier column.
        resource_name: Name used in NotFound errors, defaults to the table
            name.

    Example:
        class UserRepository(BaseRepository[User]):
            def __init__(self, database: Database) -> None:
                super().__init__(
                    database, User, default_order_by=User.created_at
                )
    """

    def __init__(
        self,
        database: Database,
        model_class: type[T],
        *,
        id_column: InstrumentedAttribute[Any] | None = None,
        default_order_by: InstrumentedAttribute[Any] | None = None,
        resource_name: str | None = None,
    ) -> None:
        self.database = database
        self.model_class = model_class
        self.id_column = id_column if id_column is not None else model_class.id
        self.default_order_by = (
            default_order_by if default_order_by is not None else self.id_column
        )
        self.table_name: str = model_class.__tablename__
        self.resource_name = resource_name or self.table_name

    @asynccontextmanager
    async def _session(
        self, session: AsyncSession | None, *, write: bool = False
    ) -> AsyncIterator[AsyncSession]:
        """Yield the caller's session or open a new one."""
        if session is not None:
            yield session
        elif write:
            async with self.database.begin() as new_session:
                yield new_session
        else:
            async with self.database() as new_session:
                yield new_session

    @contextmanager
    def _storage_errors(self, description: str, **context: object) -> Iterator[None]:
        """Translate storage exceptions into Database-kind errors."""
        try:
            yield
        except KeystoneError:
            raise
        except Exception as e:
            raise KeystoneError.database(
                description,
                cause=e,
                context={"table": self.table_name, **context},
            ) from e

    def _conditions(
        self,
        where: ColumnElement[bool] | None = None,
        filters: Mapping[str, object] | None = None,
    ) -> list[ColumnElement[bool]]:
        conditions = [] if where is None else [where]
        for field, value in (filters or {}).items():
            if hasattr(self.model_class, field):
                conditions.append(getattr(self.model_class, field) == value)
            else:
                logger.warning(
                    "Attempted to filter by non-existent field '{}' on {}",
                    field,
                    self.model_class.__name__,
                )
        return conditions

    def _ordering(self, sort_order: SortOrder | None) -> ColumnElement[Any]:
        if sort_order == "asc":
            return asc(self.default_order_by)
        return desc(self.default_order_by)

    def _select_by_filters(self, filters: Mapping[str, object]) -> Select[tuple[T]]:
        return (
            select(self.model_class)
            .where(*self._conditions(filters=filters))
            .order_by(self.id_column)
        )

    async def find_all(
        self,
        options: QueryOptions | None = None,
        *,
        session: AsyncSession | None = None,
    ) -> list[T]:
        """Fetch one page of rows.

        Args:
            options: Pagination, sort order and filters.
            session: Optional transaction-scoped session to join.

        Returns:
            list[T]: Rows ordered by the default sort column.

        Raises:
            KeystoneError: Validation-kind for invalid pagination,
                Database-kind for storage failures.
        """
        options = options or QueryOptions()
        pagination = normalize_pagination_options(options)
        stmt = (
            select(self.model_class)
            .where(*self._conditions(options.where, options.filters))
            .order_by(self._ordering(options.sort_order))
            .limit(pagination.limit)
            .offset(pagination.offset)
        )
        logger.debug(
            "Fetching {} - limit: {}, offset: {}",
            self.model_class.__name__,
            pagination.limit,
            pagination.offset,
        )

        with self._storage_errors("Failed to fetch records"):
            async with self._session(session) as active:
                instances = list((await active.scalars(stmt)).all())

        logger.debug(
            "Retrieved {} {} instances", len(instances), self.model_class.__name__
        )
        return instances

    async def find_all_paginated(
        self, options: QueryOptions | None = None
    ) -> PaginatedResult[T]:
        """Fetch one page of rows together with pagination metadata.

        The page and the total count are queried concurrently on separate
        sessions, so under concurrent writes they may disagree slightly.
        """
        options = options or QueryOptions()
        pagination = normalize_pagination_options(options)

        with trace_operation(
            "repository.find_all_paginated", table=self.table_name
        ):
            outcomes = await asyncio.gather(
                self.find_all(options),
                self.count(options.where, filters=options.filters),
                return_exceptions=True,
            )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        data, total = outcomes
        return create_paginated_result(data, total, pagination)

    async def find_by_id(
        self, entity_id: object, *, session: AsyncSession | None = None
    ) -> T | None:
        """Fetch a row by identifier.

        Returns:
            T | None: The row, or None when no row has this identifier.
        """
        logger.debug("Fetching {} by ID: {}", self.model_class.__name__, entity_id)
        stmt = select(self.model_class).where(self.id_column == entity_id)

        with self._storage_errors(
            f"Failed to fetch record with id {entity_id}", id=entity_id
        ):
            async with self._session(session) as active:
                instance = await active.scalar(stmt)

        if instance is None:
            logger.debug(
                "{} instance not found with ID: {}",
                self.model_class.__name__,
                entity_id,
            )
        return instance

    async def find_by_id_or_throw(
        self,
        entity_id: object,
        resource_name: str | None = None,
        *,
        session: AsyncSession | None = None,
    ) -> T:
        """Fetch a row by identifier, raising NotFound when it is missing."""
        instance = await self.find_by_id(entity_id, session=session)
        if instance is None:
            raise KeystoneError.not_found(
                resource_name or self.resource_name, entity_id
            )
        return instance

    async def create(
        self, data: Mapping[str, Any], *, session: AsyncSession | None = None
    ) -> T:
        """Insert one row and return it with generated fields populated.

        Args:
            data: Column values for the new row.
            session: Optional transaction-scoped session to join.

        Returns:
            T: The inserted row, including identifier and timestamps.

        Raises:
            KeystoneError: Database-kind when the insert fails or the store
                returns no row.
        """
        logger.debug("Creating new {} instance", self.model_class.__name__)
        stmt = insert(self.model_class).values(**data).returning(self.model_class)

        with self._storage_errors("Failed to create record", data=dict(data)):
            async with self._session(session, write=True) as active:
                instance = await active.scalar(stmt)

        if instance is None:
            raise KeystoneError.database(
                "Failed to create record - no record returned",
                context={"table": self.table_name, "data": dict(data)},
            )

        logger.info(
            "Created {} instance with ID: {}", self.model_class.__name__, instance.id
        )
        return instance

    async def create_many(
        self,
        data: list[Mapping[str, Any]],
        *,
        session: AsyncSession | None = None,
    ) -> list[T]:
        """Insert several rows inside one transaction.

        Rows are inserted sequentially; any failure rolls back the whole
        batch.

        Raises:
            KeystoneError: Database-kind with ``count`` in the context.
        """
        logger.debug(
            "Creating {} {} instances", len(data), self.model_class.__name__
        )

        with self._storage_errors(
            "Failed to create multiple records", count=len(data)
        ):
            async with self._session(session, write=True) as active:
                created: list[T] = []
                for item in data:
                    stmt = (
                        insert(self.model_class)
                        .values(**item)
                        .returning(self.model_class)
                    )
                    instance = await active.scalar(stmt)
                    if instance is None:
                        raise KeystoneError.database(
                            "Failed to create record - no record returned",
                            context={"table": self.table_name, "count": len(data)},
                        )
                    created.append(instance)

        logger.info("Created {} {} instances", len(created), self.model_class.__name__)
        return created

    async def update(
        self,
        entity_id: object,
        data: Mapping[str, Any],
        *,
        session: AsyncSession | None = None,
    ) -> T | None:
        """Update the given fields and refresh ``updated_at``.

        Returns:
            T | None: The updated row, or None when no row matched.
        """
        logger.debug(
            "Updating {} instance ID {} - fields: {}",
            self.model_class.__name__,
            entity_id,
            list(data.keys()),
        )
        values = {**data, "updated_at": datetime.now(UTC)}

        with self._storage_errors(
            f"Failed to update record with id {entity_id}",
            id=entity_id,
            data=dict(data),
        ):
            instance = await self._update_returning(entity_id, values, session)

        if instance is not None:
            logger.info(
                "Updated {} instance ID {} - fields: {}",
                self.model_class.__name__,
                entity_id,
                list(data.keys()),
            )
        return instance

    async def update_or_throw(
        self,
        entity_id: object,
        data: Mapping[str, Any],
        resource_name: str | None = None,
        *,
        session: AsyncSession | None = None,
    ) -> T:
        """Update a row, raising NotFound when it is missing."""
        instance = await self.update(entity_id, data, session=session)
        if instance is None:
            raise KeystoneError.not_found(
                resource_name or self.resource_name, entity_id
            )
        return instance

    async def delete(
        self, entity_id: object, *, session: AsyncSession | None = None
    ) -> bool:
        """Hard delete a row.

        Returns:
            bool: True if a row was removed, False if none matched.
        """
        logger.debug(
            "Deleting {} instance with ID: {}", self.model_class.__name__, entity_id
        )
        stmt = (
            sql_delete(self.model_class)
            .where(self.id_column == entity_id)
            .returning(self.id_column)
        )

        with self._storage_errors(
            f"Failed to delete record with id {entity_id}", id=entity_id
        ):
            async with self._session(session, write=True) as active:
                deleted = (await active.execute(stmt)).first() is not None

        if deleted:
            logger.info(
                "Deleted {} instance with ID: {}", self.model_class.__name__, entity_id
            )
        return deleted

    async def delete_or_throw(
        self,
        entity_id: object,
        resource_name: str | None = None,
        *,
        session: AsyncSession | None = None,
    ) -> bool:
        """Hard delete a row, raising NotFound when nothing was removed."""
        if not await self.delete(entity_id, session=session):
            raise KeystoneError.not_found(
                resource_name or self.resource_name, entity_id
            )
        return True

    async def soft_delete(
        self, entity_id: object, *, session: AsyncSession | None = None
    ) -> T | None:
        """Set ``deleted_at`` instead of removing the row.

        Returns:
            T | None: The updated row, or None when no row matched.

        Raises:
            KeystoneError: Configuration-kind when the model has no
                ``deleted_at`` column.
        """
        if not hasattr(self.model_class, "deleted_at"):
            raise KeystoneError.configuration(
                f"{self.model_class.__name__} does not support soft delete",
                context={"table": self.table_name},
            )

        logger.debug(
            "Soft deleting {} instance with ID: {}",
            self.model_class.__name__,
            entity_id,
        )
        now = datetime.now(UTC)

        with self._storage_errors(
            f"Failed to soft delete record with id {entity_id}", id=entity_id
        ):
            instance = await self._update_returning(
                entity_id, {"deleted_at": now, "updated_at": now}, session
            )

        if instance is not None:
            logger.info(
                "Soft deleted {} instance with ID: {}",
                self.model_class.__name__,
                entity_id,
            )
        return instance

    async def _update_returning(
        self,
        entity_id: object,
        values: Mapping[str, Any],
        session: AsyncSession | None,
    ) -> T | None:
        stmt = (
            update(self.model_class)
            .where(self.id_column == entity_id)
            .values(**values)
            .returning(self.model_class)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        async with self._session(session, write=True) as active:
            return await active.scalar(stmt)

    async def count(
        self,
        where: ColumnElement[bool] | None = None,
        *,
        filters: Mapping[str, object] | None = None,
        session: AsyncSession | None = None,
    ) -> int:
        """Count rows matching an optional predicate and filters."""
        stmt = (
            select(func.count())
            .select_from(self.model_class)
            .where(*self._conditions(where, filters))
        )

        with self._storage_errors("Failed to count records"):
            async with self._session(session) as active:
                count_value = await active.scalar(stmt) or 0

        logger.debug("Counted {} {} instances", count_value, self.model_class.__name__)
        return count_value

    async def exists(
        self, entity_id: object, *, session: AsyncSession | None = None
    ) -> bool:
        """Check whether a row with this identifier exists."""
        return await self.find_by_id(entity_id, session=session) is not None

    async def filter_by(self, **filters: object) -> list[T]:
        """Fetch every row matching all field-value pairs, ordered by id."""
        logger.debug(
            "Filtering {} instances with filters: {}",
            self.model_class.__name__,
            filters,
        )
        stmt = self._select_by_filters(filters)

        with self._storage_errors("Failed to fetch records", filters=filters):
            async with self._session(None) as active:
                return list((await active.scalars(stmt)).all())

    async def find_one_by(self, **filters: object) -> T | None:
        """Fetch the first row matching all field-value pairs."""
        logger.debug(
            "Finding one {} instance with filters: {}",
            self.model_class.__name__,
            filters,
        )
        stmt = self._select_by_filters(filters).limit(1)

        with self._storage_errors("Failed to fetch record", filters=filters):
            async with self._session(None) as active:
                return await active.scalar(stmt)

    async def execute_query[R](
        self,
        fn: Callable[[AsyncSession], Awaitable[R]],
        description: str = "Query execution failed",
    ) -> R:
        """Run a custom query with the repository's error translation."""
        with self._storage_errors(description):
            async with self._session(None) as active:
                return await fn(active)

    async def with_transaction[R](
        self, fn: Callable[[AsyncSession], Awaitable[R]]
    ) -> R:
        """Run ``fn`` in one transaction with the repository's error translation.

        Repository methods called from ``fn`` join the transaction when
        given its ``session``.
        """
        with self._storage_errors("Transaction failed"):
            return await transactions.with_transaction(self.database, fn)
