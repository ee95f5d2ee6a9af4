"""User business rules.

Besides passing CRUD and list calls through to ``UserRepository``, the
service enforces email uniqueness when inserting or updating a user,
reporting a Conflict instead of a storage-level constraint violation.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from keystone.core.exceptions import KeystoneError
from keystone.infrastructure.database.models import User
from keystone.infrastructure.database.query_options import (
    PaginatedResult,
    QueryOptions,
)
from keystone.infrastructure.repositories.user_repository import UserRepository

USER_RESOURCE = "User"


class UserService:
    """Business operations on users.

    Args:
        repository: Repository used for every storage access.
    """

    def __init__(self, repository: UserRepository) -> None:
        self.repository = repository

    async def find_all(self, options: QueryOptions | None = None) -> list[User]:
        return await self.repository.find_all(options)

    async def find_all_paginated(
        self, options: QueryOptions | None = None
    ) -> PaginatedResult[User]:
        return await self.repository.find_all_paginated(options)

    async def find_by_id(self, user_id: int) -> User | None:
        return await self.repository.find_by_id(user_id)

    async def find_by_id_or_throw(self, user_id: int) -> User:
        return await self.repository.find_by_id_or_throw(user_id, USER_RESOURCE)

    async def find_by_email(self, email: str) -> User | None:
        return await self.repository.find_by_email(email)

    async def create(self, data: Mapping[str, Any]) -> User:
        """Create a user after checking the email is not taken.

        Raises:
            KeystoneError: Conflict-kind when the email is already
                registered, Database-kind for storage failures.
        """
        email = data["email"]
        if await self.repository.email_exists(email):
            logger.info("Rejected user creation for an existing email")
            raise KeystoneError.conflict("Email already exists", {"email": email})

        return await self.repository.create(data)

    async def update(self, user_id: int, data: Mapping[str, Any]) -> User | None:
        await self._ensure_email_free(user_id, data)
        return await self.repository.update(user_id, data)

    async def update_or_throw(self, user_id: int, data: Mapping[str, Any]) -> User:
        """Update a user, refusing an email another user already has.

        Raises:
            KeystoneError: Conflict-kind when the new email belongs to a
                different user, NotFound-kind when the user does not exist.
        """
        await self._ensure_email_free(user_id, data)
        return await self.repository.update_or_throw(user_id, data, USER_RESOURCE)

    async def _ensure_email_free(self, user_id: int, data: Mapping[str, Any]) -> None:
        email = data.get("email")
        if email is None:
            return

        owner = await self.repository.find_by_email(email)
        if owner is not None and owner.id != user_id:
            logger.info("Rejected user update to an existing email")
            raise KeystoneError.conflict("Email already exists", {"email": email})

    async def delete(self, user_id: int) -> bool:
        return await self.repository.delete(user_id)

    async def delete_or_throw(self, user_id: int) -> None:
        await self.repository.delete_or_throw(user_id, USER_RESOURCE)

    async def count(self) -> int:
        return await self.repository.count()

    async def exists(self, user_id: int) -> bool:
        return await self.repository.exists(user_id)

    async def email_exists(self, email: str) -> bool:
        return await self.repository.email_exists(email)
