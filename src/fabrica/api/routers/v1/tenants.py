"""Tenant administration endpoints.

Tenant CRUD is reserved for system administrators. Membership
management under /tenants/{tenant_id}/users is open to anyone who can
manage that tenant.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from fabrica.api.dependencies import (
    get_caller_context,
    get_system_admin_caller,
    get_tenant_service,
)
from fabrica.api.schemas.errors import APIError
from fabrica.api.schemas.tenants import (
    MembershipResponse,
    TenantCreateRequest,
    TenantResponse,
    TenantUpdateRequest,
    TenantUserAddRequest,
    TenantUserResponse,
)
from fabrica.core.context import CallerContext
from fabrica.core.tenant import TenantService

router = APIRouter(prefix="/tenants", tags=["tenants"])

AdminCaller = Annotated[CallerContext, Depends(get_system_admin_caller)]
Caller = Annotated[CallerContext, Depends(get_caller_context)]
Service = Annotated[TenantService, Depends(get_tenant_service)]

ADMIN_ERRORS = {403: {"model": APIError, "description": "System administrator required"}}
NOT_FOUND = {404: {"model": APIError, "description": "Tenant not found"}}


# =============================================================================
# Tenants
# =============================================================================


@router.get("", response_model=list[TenantResponse], responses=ADMIN_ERRORS)
async def list_tenants(
    ctx: AdminCaller,
    service: Service,
    include_inactive: Annotated[bool, Query()] = False,
) -> list[TenantResponse]:
    tenants = await service.list_tenants(include_inactive=include_inactive)
    return [TenantResponse.model_validate(tenant) for tenant in tenants]


@router.post(
    "",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tenant",
    description="Creates a tenant outside onboarding. The slug is derived from the name when omitted.",
    responses={
        **ADMIN_ERRORS,
        400: {"model": APIError, "description": "Invalid name or slug"},
        409: {"model": APIError, "description": "Slug already taken"},
    },
)
async def create_tenant(
    request: TenantCreateRequest, ctx: AdminCaller, service: Service
) -> TenantResponse:
    tenant = await service.create_tenant(
        ctx,
        name=request.name,
        slug=request.slug,
        description=request.description,
        owner_user_id=request.owner_user_id,
        is_personal=request.is_personal,
        settings=request.settings,
    )
    return TenantResponse.model_validate(tenant)


@router.get(
    "/slug/{slug}",
    response_model=TenantResponse,
    responses={**ADMIN_ERRORS, **NOT_FOUND},
)
async def get_tenant_by_slug(slug: str, ctx: AdminCaller, service: Service) -> TenantResponse:
    return TenantResponse.model_validate(await service.get_tenant_by_slug(slug))


@router.get(
    "/{tenant_id}",
    response_model=TenantResponse,
    responses={**ADMIN_ERRORS, **NOT_FOUND},
)
async def get_tenant(tenant_id: UUID, ctx: AdminCaller, service: Service) -> TenantResponse:
    return TenantResponse.model_validate(await service.get_tenant(tenant_id))


@router.put(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Update a tenant",
    responses={
        **ADMIN_ERRORS,
        **NOT_FOUND,
        409: {"model": APIError, "description": "Slug already taken"},
    },
)
async def update_tenant(
    tenant_id: UUID, request: TenantUpdateRequest, ctx: AdminCaller, service: Service
) -> TenantResponse:
    updates = request.model_dump(exclude_unset=True)
    return TenantResponse.model_validate(await service.update_tenant(ctx, tenant_id, updates))


@router.delete(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Deactivate a tenant",
    responses={
        **ADMIN_ERRORS,
        **NOT_FOUND,
        412: {"model": APIError, "description": "The system tenant cannot be deleted"},
    },
)
async def delete_tenant(tenant_id: UUID, ctx: AdminCaller, service: Service) -> TenantResponse:
    return TenantResponse.model_validate(await service.delete_tenant(ctx, tenant_id))


# =============================================================================
# Tenant users
# =============================================================================


@router.get(
    "/{tenant_id}/users",
    response_model=list[TenantUserResponse],
    summary="Active members of a tenant",
    responses={403: {"model": APIError}, **NOT_FOUND},
)
async def list_tenant_users(
    tenant_id: UUID, ctx: Caller, service: Service
) -> list[TenantUserResponse]:
    members = await service.list_tenant_users(ctx, tenant_id)
    return [
        TenantUserResponse(
            user_id=user.user_id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            display_name=user.display_name,
            avatar_media_id=user.avatar_media_id,
            role=membership.role,
            granted_at=membership.granted_at,
        )
        for membership, user in members
    ]


@router.post(
    "/{tenant_id}/users",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user to a tenant",
    responses={
        403: {"model": APIError},
        404: {"model": APIError, "description": "Tenant or user not found"},
        409: {"model": APIError, "description": "Already a member"},
    },
)
async def add_tenant_user(
    tenant_id: UUID, request: TenantUserAddRequest, ctx: Caller, service: Service
) -> MembershipResponse:
    membership = await service.add_user_to_tenant(
        ctx, tenant_id, request.user_id, role=request.role
    )
    return MembershipResponse.model_validate(membership)


@router.delete(
    "/{tenant_id}/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a user from a tenant",
    responses={
        403: {"model": APIError},
        404: {"model": APIError, "description": "Not a member"},
    },
)
async def remove_tenant_user(
    tenant_id: UUID, user_id: UUID, ctx: Caller, service: Service
) -> None:
    await service.remove_user_from_tenant(ctx, tenant_id, user_id)
