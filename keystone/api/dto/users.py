"""User response shaping."""

from collections.abc import Iterable

from keystone.api.dto.base import (
    SECRET_FIELDS,
    DTOOptions,
    model_to_dict,
    pick,
    to_dto,
)
from keystone.core.types import Record
from keystone.infrastructure.database.models import User

PUBLIC_USER_FIELDS = ("id", "name", "email")


class UserDTO:
    """Conversions from ``User`` rows to response records."""

    response_options = DTOOptions(exclude=(*SECRET_FIELDS, "deleted_at"))

    @classmethod
    def to_response(cls, user: User) -> Record:
        return to_dto(model_to_dict(user), cls.response_options)

    @classmethod
    def to_responses(cls, users: Iterable[User]) -> list[Record]:
        return [cls.to_response(user) for user in users]

    @staticmethod
    def to_public(user: User) -> Record:
        """Only the fields safe to show to other users."""
        return pick(model_to_dict(user), PUBLIC_USER_FIELDS)
