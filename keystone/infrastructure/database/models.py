"""Database models for the application's entities."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from keystone.infrastructure.database.base import BaseModel, SoftDeleteMixin

EMAIL_MAX_LENGTH = 255
NAME_MAX_LENGTH = 255


class User(SoftDeleteMixin, BaseModel):
    """An application user identified by a unique email address."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(EMAIL_MAX_LENGTH),
        unique=True,
        nullable=False,
        doc="Unique email address",
    )
    name: Mapped[str | None] = mapped_column(
        String(NAME_MAX_LENGTH),
        nullable=True,
        doc="Display name",
    )
