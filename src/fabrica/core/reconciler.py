"""Login-time acceptance of pending invitations.

When a user signs in, every pending and unexpired invitation addressed
to their email is turned into a membership. Each invitation is handled
inside its own SAVEPOINT so one bad invitation cannot undo the others or
fail the login.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fabrica.core.audit import AuditLogger
from fabrica.core.exceptions import TenantInactiveError, TenantNotFoundError
from fabrica.db.models.audit import AuditEventType
from fabrica.db.models.base import utcnow
from fabrica.db.models.invitation import Invitation
from fabrica.db.models.membership import TenantRole
from fabrica.db.models.user import User
from fabrica.db.repositories.invitation import InvitationRepository
from fabrica.db.repositories.membership import MembershipRepository
from fabrica.db.repositories.tenant import TenantRepository
from fabrica.observability.metrics import record_invitation_reconciled

logger = structlog.get_logger()

ACCEPTED = "accepted"
ALREADY_MEMBER = "already_member"
FAILED = "failed"


@dataclass
class ReconcileReport:
    """Outcome of one reconciliation pass.

    Attributes:
        accepted: Tenants the user newly joined
        already_member: Tenants where an active membership already existed
        failed: Invitations that could not be processed
    """

    accepted: list[UUID] = field(default_factory=list)
    already_member: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.accepted) + len(self.already_member) + len(self.failed)


class InvitationReconciler:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.invitations = InvitationRepository(db)
        self.memberships = MembershipRepository(db)
        self.tenants = TenantRepository(db)
        self.audit = AuditLogger(db)

    async def reconcile(self, user: User, now: datetime | None = None) -> ReconcileReport:
        """Accept every pending invitation for the user's email.

        Never raises: failures are logged, counted and reported.

        Args:
            user: The user who just signed in
            now: Reference time for expiry (default: current time)

        Returns:
            ReconcileReport with per-tenant outcomes
        """
        now = now or utcnow()
        report = ReconcileReport()
        user_id = user.user_id

        try:
            pending = await self.invitations.pending_for_email(user.email, now)
        except SQLAlchemyError:
            logger.exception("invitation_reconcile_load_failed", user_id=str(user_id))
            await self._recover(user)
            return report

        # Ids are captured up front; a rolled back savepoint expires the rows
        batch = [(inv, inv.invitation_id, inv.tenant_id) for inv in pending]
        for invitation, invitation_id, tenant_id in batch:
            try:
                async with self.db.begin_nested():
                    outcome = await self._accept(invitation, user_id, now)
            except Exception as exc:
                logger.warning(
                    "invitation_reconcile_failed",
                    invitation_id=str(invitation_id),
                    tenant_id=str(tenant_id),
                    user_id=str(user_id),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                report.failed.append(invitation_id)
                record_invitation_reconciled(FAILED)
                continue

            if outcome == ACCEPTED:
                report.accepted.append(tenant_id)
            else:
                report.already_member.append(tenant_id)
            record_invitation_reconciled(outcome)

        if not batch:
            return report

        try:
            await self.db.commit()
        except SQLAlchemyError:
            logger.exception("invitation_reconcile_commit_failed", user_id=str(user_id))
            await self._recover(user)
            return ReconcileReport(failed=[invitation_id for _, invitation_id, _ in batch])

        logger.info(
            "invitations_reconciled",
            user_id=str(user_id),
            accepted=len(report.accepted),
            already_member=len(report.already_member),
            failed=len(report.failed),
        )
        return report

    async def _recover(self, user: User) -> None:
        # Rollback expires every loaded row; the caller keeps using the user
        await self.db.rollback()
        await self.db.refresh(user)

    async def _accept(self, invitation: Invitation, user_id: UUID, now: datetime) -> str:
        tenant = await self.tenants.get(invitation.tenant_id)
        if tenant is None:
            raise TenantNotFoundError(invitation.tenant_id)
        if not tenant.is_active:
            raise TenantInactiveError(invitation.tenant_id)

        _, created = await self.memberships.grant(
            user_id,
            invitation.tenant_id,
            TenantRole.MEMBER,
            granted_by=invitation.invited_by,
        )

        if await self.invitations.mark_accepted(invitation, user_id, now):
            await self.audit.log_event(
                AuditEventType.INVITATION_ACCEPTED,
                {"email": invitation.email, "membership_created": created},
                user_id=user_id,
                tenant_id=invitation.tenant_id,
                resource_type="invitation",
                resource_id=invitation.invitation_id,
            )

        return ACCEPTED if created else ALREADY_MEMBER
