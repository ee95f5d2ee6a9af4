"""HTTP route modules."""

from keystone.api.routes.users import router as users_router

__all__ = ["users_router"]
