"""Invitation management for the selected tenant."""

from datetime import datetime, timedelta
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.config.settings import get_settings
from fabrica.core.audit import AuditLogger
from fabrica.core.authorization import require_can_manage
from fabrica.core.context import CallerContext
from fabrica.core.exceptions import (
    DuplicateInvitationError,
    DuplicateMembershipError,
    InvalidInvitationStateError,
    SelfInvitationError,
)
from fabrica.core.users import default_display_name, validate_email
from fabrica.db.models.audit import AuditEventType
from fabrica.db.models.base import utcnow
from fabrica.db.models.invitation import Invitation
from fabrica.db.models.user import User
from fabrica.db.repositories.invitation import InvitationRepository
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.db.repositories.tenant import TenantRepository
from fabrica.db.repositories.user import UserRepository

logger = structlog.get_logger()


def invitation_expiry(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(days=get_settings().INVITATION_EXPIRY_DAYS)


def inviter_name(user: User | None) -> str:
    """Display name of the inviting user, falling back to first and last name."""
    if user is None:
        return ""
    return user.display_name or default_display_name(user.first_name, user.last_name) or ""


class InvitationService:
    """Create, list and revoke invitations in the caller's selected tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.invitations = InvitationRepository(db)
        self.memberships = MembershipRepository(db)
        self.tenants = TenantRepository(db)
        self.users = UserRepository(db)
        self.audit = AuditLogger(db)

    async def list_pending(self, ctx: CallerContext) -> list[Invitation]:
        """Pending, unexpired invitations of the selected tenant.

        Raises:
            BadRequestError: If no single tenant is selected
            ForbiddenError: If the caller cannot manage the tenant
        """
        tenant_id = ctx.require_tenant_id()
        await require_can_manage(self.db, ctx, "list_invitations")
        return await self.invitations.pending_for_tenant(tenant_id)

    async def create_invitation(self, ctx: CallerContext, email: str) -> Invitation:
        """Invite an email address to the selected tenant.

        Raises:
            BadRequestError: If no tenant is selected or the email is invalid
            ForbiddenError: If the caller cannot manage the tenant
            TenantNotFoundError: If the selected tenant does not exist
            SelfInvitationError: If the caller invites themselves
            DuplicateInvitationError: If a pending invitation already exists
            DuplicateMembershipError: If the address already belongs to a member
        """
        tenant_id = ctx.require_tenant_id()
        inviter_id = ctx.require_user_id()
        email = validate_email(email)

        await require_can_manage(self.db, ctx, "create_invitation")
        await self.tenants.get_or_raise(tenant_id)

        inviter = await self.users.get(inviter_id)
        if inviter is not None and inviter.email.lower() == email:
            raise SelfInvitationError(email)

        if await self.invitations.pending_exists(email, tenant_id):
            raise DuplicateInvitationError(email, tenant_id)

        invitee = await self.users.get_by_email(email)
        if invitee is not None and await self.memberships.get_active(
            invitee.user_id, tenant_id
        ):
            raise DuplicateMembershipError(invitee.user_id, tenant_id)

        invitation = Invitation(
            email=email,
            tenant_id=tenant_id,
            invited_by=inviter_id,
            expires_at=invitation_expiry(),
        )
        await self.invitations.create(invitation)

        await self.audit.log_event(
            AuditEventType.INVITATION_CREATED,
            {"email": email},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="invitation",
            resource_id=invitation.invitation_id,
        )
        await self.db.commit()

        logger.info(
            "invitation_created",
            invitation_id=str(invitation.invitation_id),
            tenant_id=str(tenant_id),
        )
        return invitation

    async def revoke_invitation(self, ctx: CallerContext, invitation_id: UUID) -> Invitation:
        """Revoke a pending invitation of the selected tenant.

        Raises:
            BadRequestError: If no single tenant is selected
            ForbiddenError: If the caller cannot manage the tenant
            InvitationNotFoundError: If the invitation is not in this tenant
            InvalidInvitationStateError: If the invitation is no longer pending
        """
        tenant_id = ctx.require_tenant_id()
        await require_can_manage(self.db, ctx, "revoke_invitation")

        invitation = await self.invitations.get_for_tenant(invitation_id, tenant_id)
        if not invitation.is_pending:
            raise InvalidInvitationStateError(invitation_id, invitation.status)
        if not await self.invitations.mark_revoked(invitation):
            # Accepted or revoked by someone else since it was read
            raise InvalidInvitationStateError(invitation_id, invitation.status)

        await self.audit.log_event(
            AuditEventType.INVITATION_REVOKED,
            {"email": invitation.email},
            ctx=ctx,
            tenant_id=tenant_id,
            resource_type="invitation",
            resource_id=invitation_id,
        )
        await self.db.commit()
        return invitation

    async def describe(self, invitations: list[Invitation]) -> list[tuple[Invitation, str, str]]:
        """Pair each invitation with its tenant name and the inviter's name.

        Returns:
            (invitation, tenant_name, invited_by_name) per invitation, in order
        """
        tenant_names = {
            tenant.tenant_id: tenant.name
            for tenant in await self.tenants.get_many(list({i.tenant_id for i in invitations}))
        }
        inviters = {
            user.user_id: user
            for user in await self.users.get_many(list({i.invited_by for i in invitations}))
        }
        return [
            (
                invitation,
                tenant_names.get(invitation.tenant_id, ""),
                inviter_name(inviters.get(invitation.invited_by)),
            )
            for invitation in invitations
        ]
