"""User CRUD endpoints.

Routes only translate HTTP into service calls. Input validation is done
by the request schemas, error mapping by the registered exception
handlers, and response shaping by ``UserDTO``.
"""

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Path, Query, Response, status

from keystone.api.constants import API_PREFIX, MAX_ENTITY_ID
from keystone.api.dependencies import ServicesDep
from keystone.api.dto.users import UserDTO
from keystone.api.middleware.rate_limit import enforce_rate_limit
from keystone.api.schemas.errors import ErrorResponse
from keystone.api.schemas.users import (
    UserCreate,
    UserEnvelope,
    UserListEnvelope,
    UserUpdate,
)
from keystone.infrastructure.database.query_options import QueryOptions

router = APIRouter(
    prefix=f"{API_PREFIX}/users",
    tags=["users"],
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)

UserId = Annotated[int, Path(ge=1, le=MAX_ENTITY_ID)]

NOT_FOUND_RESPONSE: dict[int | str, dict[str, Any]] = {
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}
}


@router.get("", response_model=UserListEnvelope)
async def list_users(
    services: ServicesDep,
    page: Annotated[int | None, Query(description="1-based page number")] = None,
    limit: Annotated[int | None, Query(description="Page size, at most 100")] = None,
    sort_order: Annotated[Literal["asc", "desc"] | None, Query()] = None,
) -> dict[str, Any]:
    """List users one page at a time, newest first unless sort_order=asc."""
    result = await services.user.find_all_paginated(
        QueryOptions(page=page, limit=limit, sort_order=sort_order)
    )
    return {
        "success": True,
        "data": UserDTO.to_responses(result.data),
        "pagination": result.pagination,
    }


@router.get("/{user_id}", response_model=UserEnvelope, responses=NOT_FOUND_RESPONSE)
async def get_user(user_id: UserId, services: ServicesDep) -> dict[str, Any]:
    user = await services.user.find_by_id_or_throw(user_id)
    return {"success": True, "data": UserDTO.to_response(user)}


@router.post(
    "",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
)
async def create_user(body: UserCreate, services: ServicesDep) -> dict[str, Any]:
    """Register a user; the email must not be taken yet."""
    user = await services.user.create(body.model_dump())
    return {"success": True, "data": UserDTO.to_response(user)}


@router.put("/{user_id}", response_model=UserEnvelope, responses=NOT_FOUND_RESPONSE)
async def update_user(
    user_id: UserId, body: UserUpdate, services: ServicesDep
) -> dict[str, Any]:
    """Update the fields present in the body; absent fields are kept."""
    user = await services.user.update_or_throw(
        user_id, body.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": UserDTO.to_response(user)}


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=NOT_FOUND_RESPONSE,
)
async def delete_user(user_id: UserId, services: ServicesDep) -> Response:
    await services.user.delete_or_throw(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
