"""Invitation endpoints for the selected tenant.

- GET /v1/invitations - Pending invitations
- POST /v1/invitations - Invite an email address
- DELETE /v1/invitations/{invitation_id} - Revoke a pending invitation
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from fabrica.api.dependencies import get_caller_context, get_invitation_service
from fabrica.api.schemas.errors import APIError
from fabrica.api.schemas.invitations import (
    InvitationCreateRequest,
    InvitationResponse,
    invitation_response,
)
from fabrica.core.context import CallerContext
from fabrica.core.invitations import InvitationService

router = APIRouter(prefix="/invitations", tags=["invitations"])

MANAGE_ERRORS = {
    400: {"model": APIError, "description": "No tenant selected"},
    403: {"model": APIError, "description": "Caller cannot manage the tenant"},
}


@router.get(
    "",
    response_model=list[InvitationResponse],
    summary="Pending invitations of the selected tenant",
    responses=MANAGE_ERRORS,
)
async def list_invitations(
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[InvitationService, Depends(get_invitation_service)],
) -> list[InvitationResponse]:
    invitations = await service.list_pending(ctx)
    return [invitation_response(*row) for row in await service.describe(invitations)]


@router.post(
    "",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite an email address to the selected tenant",
    responses={
        **MANAGE_ERRORS,
        409: {"model": APIError, "description": "Already invited, already a member or self"},
    },
)
async def create_invitation(
    request: InvitationCreateRequest,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[InvitationService, Depends(get_invitation_service)],
) -> InvitationResponse:
    invitation = await service.create_invitation(ctx, request.email)
    [row] = await service.describe([invitation])
    return invitation_response(*row)


@router.delete(
    "/{invitation_id}",
    response_model=InvitationResponse,
    summary="Revoke a pending invitation",
    responses={
        **MANAGE_ERRORS,
        404: {"model": APIError, "description": "Invitation not found in this tenant"},
        412: {"model": APIError, "description": "Invitation is no longer pending"},
    },
)
async def revoke_invitation(
    invitation_id: UUID,
    ctx: Annotated[CallerContext, Depends(get_caller_context)],
    service: Annotated[InvitationService, Depends(get_invitation_service)],
) -> InvitationResponse:
    invitation = await service.revoke_invitation(ctx, invitation_id)
    [row] = await service.describe([invitation])
    return invitation_response(*row)
