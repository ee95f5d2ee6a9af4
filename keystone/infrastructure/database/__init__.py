"""Database infrastructure built on SQLAlchemy's async ORM.

- **base**: Declarative base and common model fields
- **models**: Entity models
- **session**: Engine and ``Database`` session factory management
- **query_options** / **pagination**: List query intent and page math
- **transactions**: Unit-of-work helpers with optional retry
- **repository**: Generic repository with CRUD operations
- **dependencies**: FastAPI dependency injection helpers
"""

from keystone.infrastructure.database.base import Base, BaseModel, SoftDeleteMixin
from keystone.infrastructure.database.session import (
    Database,
    check_database_connection,
    close_database,
    create_database,
    create_database_engine,
    get_database,
    get_engine,
)
from keystone.infrastructure.database.query_options import (
    PaginatedResult,
    PaginationMetadata,
    PaginationOptions,
    QueryOptions,
)
from keystone.infrastructure.database.pagination import (
    calculate_offset,
    calculate_total_pages,
    create_paginated_result,
    create_pagination_metadata,
    get_default_pagination_options,
    normalize_pagination_options,
    validate_pagination_options,
)
from keystone.infrastructure.database.transactions import (
    TransactionOptions,
    execute_in_transaction,
    with_transaction,
    with_transaction_retry,
)
from keystone.infrastructure.database.repository import BaseRepository
from keystone.infrastructure.database.dependencies import DatabaseDep, get_db

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "Database",
    "DatabaseDep",
    "PaginatedResult",
    "PaginationMetadata",
    "PaginationOptions",
    "QueryOptions",
    "SoftDeleteMixin",
    "TransactionOptions",
    "calculate_offset",
    "calculate_total_pages",
    "check_database_connection",
    "close_database",
    "create_database",
    "create_database_engine",
    "create_paginated_result",
    "create_pagination_metadata",
    "execute_in_transaction",
    "get_database",
    "get_db",
    "get_default_pagination_options",
    "get_engine",
    "normalize_pagination_options",
    "validate_pagination_options",
    "with_transaction",
    "with_transaction_retry",
]
