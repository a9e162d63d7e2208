"""User administration endpoints (system administrators only)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fabrica.api.dependencies import get_system_admin_caller, get_user_service
from fabrica.api.schemas.errors import APIError
from fabrica.api.schemas.users import UserCreateRequest, UserResponse, UserUpdateRequest
from fabrica.core.context import CallerContext
from fabrica.core.users import UserService

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={403: {"model": APIError, "description": "System administrator required"}},
)

AdminCaller = Annotated[CallerContext, Depends(get_system_admin_caller)]
Service = Annotated[UserService, Depends(get_user_service)]
NOT_FOUND = {404: {"model": APIError, "description": "User not found"}}


@router.get("", response_model=list[UserResponse])
async def list_users(
    ctx: AdminCaller,
    service: Service,
    include_inactive: Annotated[bool, Query()] = True,
) -> list[UserResponse]:
    users = await service.list_users(include_inactive=include_inactive)
    return [UserResponse.model_validate(user) for user in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": APIError, "description": "Email already registered"}},
)
async def create_user(request: UserCreateRequest, ctx: AdminCaller, service: Service) -> UserResponse:
    user = await service.create_user(ctx, **request.model_dump())
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse, responses=NOT_FOUND)
async def get_user(user_id: UUID, ctx: AdminCaller, service: Service) -> UserResponse:
    return UserResponse.model_validate(await service.get_user(user_id))


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={**NOT_FOUND, 409: {"model": APIError, "description": "Email already registered"}},
)
async def update_user(
    user_id: UUID, request: UserUpdateRequest, ctx: AdminCaller, service: Service
) -> UserResponse:
    user = await service.update_user(ctx, user_id, request.model_dump(exclude_unset=True))
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
async def delete_user(user_id: UUID, ctx: AdminCaller, service: Service) -> None:
    await service.delete_user(ctx, user_id)
