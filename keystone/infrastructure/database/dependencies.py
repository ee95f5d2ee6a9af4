"""FastAPI dependency injection for the database handle.

Route handlers never hold a session themselves; they receive the
``Database`` session factory and hand it to services and repositories,
which open sessions and transactions per operation.
"""

from typing import Annotated

from fastapi import Depends

from keystone.infrastructure.database.session import Database, get_database


def get_db() -> Database:
    """Provide the process-wide ``Database`` session factory.

    Tests override this dependency to point the application at another
    store.

    Example:
        @app.get("/users")
        async def list_users(database: DatabaseDep) -> list[dict[str, Any]]:
            ...
    """
    return get_database()


# Type alias for cleaner dependency injection
DatabaseDep = Annotated[Database, Depends(get_db)]
