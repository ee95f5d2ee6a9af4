"""Repository for the ``users`` table."""

from loguru import logger

from keystone.infrastructure.database.models import User
from keystone.infrastructure.database.repository import BaseRepository
from keystone.infrastructure.database.session import Database


class UserRepository(BaseRepository[User]):
    """User queries; lists are ordered by creation time."""

    def __init__(self, database: Database) -> None:
        super().__init__(database, User, default_order_by=User.created_at)

    async def find_by_email(self, email: str) -> User | None:
        """Fetch the user registered with ``email``, if any."""
        logger.debug("Fetching User by email")
        return await self.find_one_by(email=email)

    async def email_exists(self, email: str) -> bool:
        return await self.find_by_email(email) is not None
