"""User request and response models."""

from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from keystone.api.dto.transformers import clean_input
from keystone.infrastructure.database.models import NAME_MAX_LENGTH
from keystone.infrastructure.database.query_options import PaginationMetadata


class _UserInput(BaseModel):
    """Shared input cleanup: strings are trimmed, empty strings become null."""

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def clean_strings(cls, data: Any) -> Any:  # noqa: ANN401 - raw request payload
        if isinstance(data, dict):
            return clean_input(data)
        return data


class UserCreate(_UserInput):
    email: EmailStr
    name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(_UserInput):
    email: EmailStr | None = None
    name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)

    @field_validator("email", mode="before")
    @classmethod
    def email_not_null(cls, v: Any) -> Any:  # noqa: ANN401 - raw request value
        # Only runs when email is sent; absent means "keep the current one"
        if v is None:
            raise ValueError("Email cannot be null or empty")
        return v

    @field_validator("email", mode="after")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserResponse(BaseModel):
    id: int
    email: str
    name: str | None = None
    created_at: datetime
    updated_at: datetime


class UserEnvelope(BaseModel):
    success: bool = True
    data: UserResponse


class UserListEnvelope(BaseModel):
    success: bool = True
    data: list[UserResponse]
    pagination: PaginationMetadata
