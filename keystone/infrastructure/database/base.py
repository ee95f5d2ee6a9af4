"""SQLAlchemy declarative base and common model fields.

- **Base**: Declarative base carrying the constraint naming convention
- **BaseModel**: Abstract model with ``id``, ``created_at`` and ``updated_at``
- **SoftDeleteMixin**: Adds the nullable ``deleted_at`` marker used by
  ``BaseRepository.soft_delete``

Identifiers and timestamps are generated by the database, so a freshly
inserted row returned from the repository always carries them.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from keystone.infrastructure.constants import NAMING_CONVENTION

# SQLite only autoincrements INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base with naming conventions."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModel(Base):
    """Abstract base model with common fields for all database models.

    This model provides:
    - Sequential integer ID (BigInteger for scale)
    - Automatic created_at timestamp
    - updated_at timestamp, refreshed by every repository update
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(
        IdType,
        primary_key=True,
        autoincrement=True,
        doc="Primary key with auto-incrementing BigInteger ID",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        doc="Timestamp when the record was created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        doc="Timestamp when the record was last updated (UTC)",
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


class SoftDeleteMixin:
    """Marks rows as deleted instead of removing them."""

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        doc="Timestamp when the record was soft deleted (UTC)",
    )

    @property
    def is_deleted(self) -> bool:
        """Whether the row has been soft deleted."""
        return self.deleted_at is not None
