"""Transaction helpers over the ``Database`` session factory.

A unit of work is an async callable receiving a transaction-scoped
``AsyncSession``. Commit and rollback are delegated to
``async_sessionmaker.begin()``: the transaction commits when the unit of
work returns and rolls back when it raises.

Operations inside one transaction always run sequentially on the same
session. ``with_transaction_retry`` retries every failure the same way;
it has no notion of retryable versus permanent errors.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.constants import MILLISECONDS_PER_SECOND
from keystone.infrastructure.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
)
from keystone.infrastructure.database.session import Database

type UnitOfWork[R] = Callable[[AsyncSession], Awaitable[R]]


class TransactionOptions(BaseModel):
    """Retry policy for ``with_transaction_retry``."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_delay_ms: int = Field(default=DEFAULT_RETRY_DELAY_MS, ge=0)


async def with_transaction[R](database: Database, fn: UnitOfWork[R]) -> R:
    """Run ``fn`` inside one transaction.

    Args:
        database: Session factory to open the transaction on.
        fn: Unit of work receiving the transaction-scoped session.

    Returns:
        The value returned by ``fn``.
    """
    async with database.begin() as session:
        return await fn(session)


async def execute_in_transaction[R](
    database: Database, operations: Sequence[UnitOfWork[R]]
) -> list[R]:
    """Run ``operations`` in order inside a single transaction.

    If any operation raises, the whole transaction is rolled back and the
    error propagates; no partial results are returned.
    """

    async def run_all(session: AsyncSession) -> list[R]:
        return [await operation(session) for operation in operations]

    return await with_transaction(database, run_all)


async def with_transaction_retry[R](
    database: Database,
    fn: UnitOfWork[R],
    options: TransactionOptions | None = None,
) -> R:
    """Run ``fn`` in a fresh transaction, retrying on any failure.

    ``fn`` is attempted up to ``max_retries + 1`` times. Before retry number
    ``n`` the call sleeps ``retry_delay_ms * n`` milliseconds; there is no
    delay after the final attempt.

    Args:
        database: Session factory to open transactions on.
        fn: Unit of work receiving the transaction-scoped session.
        options: Retry policy, defaults to 3 retries with 100ms base delay.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        Exception: The error raised by the last attempt, unchanged.
    """
    options = options or TransactionOptions()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await with_transaction(database, fn)
        except Exception as error:
            if attempt > options.max_retries:
                logger.error(
                    "Transaction failed after {} attempts: {}",
                    attempt,
                    type(error).__name__,
                )
                raise

            delay_ms = options.retry_delay_ms * attempt
            logger.warning(
                "Transaction attempt {} failed, retrying in {}ms: {}",
                attempt,
                delay_ms,
                type(error).__name__,
                attempt=attempt,
                max_retries=options.max_retries,
            )
            await asyncio.sleep(delay_ms / MILLISECONDS_PER_SECOND)
