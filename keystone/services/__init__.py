"""Entity services holding business rules on top of the repositories."""

from dataclasses import dataclass

from keystone.infrastructure.database.session import Database
from keystone.infrastructure.repositories import UserRepository
from keystone.services.user_service import UserService


@dataclass(frozen=True, slots=True)
class Services:
    """Every entity service, built once per store handle."""

    user: UserService


def create_services(database: Database) -> Services:
    """Create all service instances bound to ``database``."""
    return Services(user=UserService(UserRepository(database)))


__all__ = ["Services", "UserService", "create_services"]
