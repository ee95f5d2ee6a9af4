"""Pagination math shared by every list operation.

All functions are pure. ``normalize_pagination_options`` is the single
place where defaults are filled in and limits are enforced, so page and
limit semantics are identical for every entity.

Example:
    >>> options = normalize_pagination_options(PaginationOptions(page=3))
    >>> options.offset
    20
    >>> create_pagination_metadata(100, options).has_next_page
    True
"""

from collections.abc import Sequence

from keystone.core.exceptions import KeystoneError
from keystone.infrastructure.constants import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
)
from keystone.infrastructure.database.query_options import (
    PaginatedResult,
    PaginationMetadata,
    PaginationOptions,
)


def calculate_offset(page: int, limit: int) -> int:
    """Offset of the first row of ``page``.

    Non-positive pages are not clamped and yield a negative offset;
    ``normalize_pagination_options`` rejects them before they reach storage.
    """
    return (page - 1) * limit


def calculate_total_pages(total: int, limit: int) -> int:
    """Number of pages needed for ``total`` rows, 0 when there are none."""
    return -(-total // limit)


def validate_pagination_options(options: PaginationOptions) -> None:
    """Check page, limit and offset bounds.

    Every condition is checked independently. The error message is the
    first violation found and the context lists all of them.

    Raises:
        KeystoneError: Validation-kind error describing the violations.
    """
    errors: list[str] = []
    if options.page is not None and options.page < 1:
        errors.append("Page must be greater than 0")
    if options.limit is not None and options.limit < 1:
        errors.append("Limit must be greater than 0")
    if options.limit is not None and options.limit > MAX_PAGE_LIMIT:
        errors.append(f"Limit must be less than or equal to {MAX_PAGE_LIMIT}")
    if options.offset is not None and options.offset < 0:
        errors.append("Offset must be greater than or equal to 0")

    if errors:
        raise KeystoneError.validation(
            errors[0],
            context={
                "errors": errors,
                "page": options.page,
                "limit": options.limit,
                "offset": options.offset,
            },
        )


def get_default_pagination_options() -> PaginationOptions:
    return PaginationOptions(page=DEFAULT_PAGE, limit=DEFAULT_PAGE_LIMIT, offset=0)


def normalize_pagination_options(
    options: PaginationOptions | None = None,
) -> PaginationOptions:
    """Fill in defaults, derive the offset and validate.

    Args:
        options: Raw pagination intent; any field may be missing.

    Returns:
        PaginationOptions: Options with ``page``, ``limit`` and ``offset`` set.

    Raises:
        KeystoneError: Validation-kind error for out-of-range values.
    """
    if options is None:
        options = PaginationOptions()
    page = options.page if options.page is not None else DEFAULT_PAGE
    limit = options.limit if options.limit is not None else DEFAULT_PAGE_LIMIT
    offset = (
        options.offset
        if options.offset is not None
        else calculate_offset(page, limit)
    )

    normalized = PaginationOptions(page=page, limit=limit, offset=offset)
    validate_pagination_options(normalized)
    return normalized


def create_pagination_metadata(
    total: int, options: PaginationOptions | None = None
) -> PaginationMetadata:
    """Compute page position metadata for ``total`` matching rows."""
    normalized = normalize_pagination_options(options)
    page = normalized.page or DEFAULT_PAGE
    limit = normalized.limit or DEFAULT_PAGE_LIMIT
    total_pages = calculate_total_pages(total, limit)

    return PaginationMetadata(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def create_paginated_result[T](
    data: Sequence[T], total: int, options: PaginationOptions | None = None
) -> PaginatedResult[T]:
    """Wrap one page of rows with its metadata."""
    return PaginatedResult(
        data=list(data), pagination=create_pagination_metadata(total, options)
    )
