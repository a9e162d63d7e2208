"""API schemas for invitations."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from fabrica.db.models.invitation import Invitation


class InvitationCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, description="Address to invite")


class InvitationResponse(BaseModel):
    invitation_id: UUID
    email: str
    tenant_id: UUID
    tenant_name: str = ""
    invited_by: UUID
    invited_by_name: str = ""
    status: str
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


def invitation_response(
    invitation: Invitation, tenant_name: str, invited_by_name: str
) -> InvitationResponse:
    return InvitationResponse.model_validate(invitation).model_copy(
        update={"tenant_name": tenant_name, "invited_by_name": invited_by_name}
    )
