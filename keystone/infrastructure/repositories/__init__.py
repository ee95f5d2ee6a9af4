"""Concrete repositories, one per entity."""

from keystone.infrastructure.repositories.user_repository import UserRepository

__all__ = ["UserRepository"]
