"""FastAPI dependencies shared by the route modules."""

from typing import Annotated

from fastapi import Depends

from keystone.infrastructure.database.dependencies import DatabaseDep
from keystone.services import Services, create_services


def get_services(database: DatabaseDep) -> Services:
    """Build the service container on the request's ``Database`` handle."""
    return create_services(database)


ServicesDep = Annotated[Services, Depends(get_services)]
