"""Login sync and tenant access endpoints.

- POST /v1/auth/sync - Synchronize a signed-in user
- GET /v1/auth/permissions/{user_id} - Global roles and permissions
- GET /v1/auth/tenants - Tenants of the caller and onboarding flags
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from fabrica.api.dependencies import (
    get_access_aggregator,
    get_caller_context,
    get_login_service,
)
from fabrica.api.schemas.auth import (
    CurrentTenantsResponse,
    LoginSyncRequest,
    LoginSyncResponse,
    UserPermissionsResponse,
    login_sync_response,
    tenant_access_response,
)
from fabrica.api.schemas.errors import APIError
from fabrica.core.access import TenantAccessAggregator
from fabrica.core.context import CallerContext
from fabrica.core.login import LoginSyncService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/sync",
    response_model=LoginSyncResponse,
    summary="Synchronize a signed-in user",
    description="""
    Called by the shell after the identity provider has authenticated a user.

    Creates the user on first sign-in, accepts pending invitations for the
    user's email and returns the tenants the user can switch between along
    with whether onboarding is required.
    """,
    responses={
        400: {"model": APIError, "description": "Invalid email"},
    },
)
async def sync_login(
    request: LoginSyncRequest,
    service: Annotated[LoginSyncService, Depends(get_login_service)],
) -> LoginSyncResponse:
    result = await service.sync(
        email=request.email,
        external_auth_id=request.external_auth_id,
        first_name=request.first_name,
        last_name=request.last_name,
        display_name=request.display_name,
    )
    return login_sync_response(result)


@router.get(
    "/permissions/{user_id}",
    response_model=UserPermissionsResponse,
    summary="Global roles and permissions of a user",
)
async def get_permissions(
    user_id: UUID,
    service: Annotated[LoginSyncService, Depends(get_login_service)],
) -> UserPermissionsResponse:
    roles, permissions = await service.permissions(user_id)
    return UserPermissionsResponse(user_id=user_id, roles=roles, permissions=permissions)


@router.get(
    "/tenants",
    response_model=CurrentTenantsResponse,
    summary="Tenants of the caller",
    description="""
    Active tenants the caller belongs to, ordered by name. System
    administrators also get the "All Tenants" entry first.
    """,
)
async def get_current_tenants(
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    aggregator: Annotated[TenantAccessAggregator, Depends(get_access_aggregator)],
) -> CurrentTenantsResponse:
    tenants, decision = await aggregator.current(ctx.user_id, ctx.is_system_admin)
    return CurrentTenantsResponse(
        tenants=[tenant_access_response(entry) for entry in tenants],
        requires_onboarding=decision.requires_onboarding,
        onboarding_step=decision.current_step,
    )
