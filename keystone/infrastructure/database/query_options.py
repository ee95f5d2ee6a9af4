"""Per-call query value objects shared by every repository.

``QueryOptions`` carries pagination intent (``page`` and/or ``offset`` plus
``limit``), sort intent and filter intent. ``where`` is an SQLAlchemy
boolean expression built by the caller; ``filters`` is a plain mapping of
column name to value applied as equality predicates.
"""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import ColumnElement

T = TypeVar("T")

type SortOrder = Literal["asc", "desc"]


class PaginationOptions(BaseModel):
    """Raw pagination intent; validated by ``normalize_pagination_options``."""

    model_config = ConfigDict(frozen=True)

    page: int | None = None
    limit: int | None = None
    offset: int | None = None


class QueryOptions(PaginationOptions):
    """Pagination, sort and filter intent for list operations.

    ``sort_by`` and ``search`` are accepted for API compatibility but
    ignored; every repository sorts by its own default column.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sort_by: str | None = None
    sort_order: SortOrder | None = None
    where: ColumnElement | None = None
    filters: dict[str, Any] | None = None
    search: str | None = None


class PaginationMetadata(BaseModel):
    """Page position returned alongside a page of results."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class PaginatedResult(BaseModel, Generic[T]):
    """One page of entities plus its metadata."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: list[T] = Field(default_factory=list)
    pagination: PaginationMetadata
