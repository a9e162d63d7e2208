"""Repository for tenant invitations.

Expiry is evaluated at read time: an expired pending invitation is never
rewritten, it is simply filtered out of every pending query.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update

from fabrica.core.exceptions import InvitationNotFoundError
from fabrica.db.models.base import utcnow
from fabrica.db.models.invitation import Invitation, InvitationStatus

from .base import BaseRepository
from .user import normalize_email


class InvitationRepository(BaseRepository[Invitation, UUID]):
    not_found_error = InvitationNotFoundError

    def _pending(self, now: datetime | None):
        return select(Invitation).where(
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at > (now or utcnow()),
        )

    async def pending_for_email(
        self, email: str, now: datetime | None = None
    ) -> list[Invitation]:
        stmt = (
            self._pending(now)
            .where(func.lower(Invitation.email) == normalize_email(email))
            .order_by(Invitation.created_at, Invitation.invitation_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def pending_for_tenant(
        self, tenant_id: UUID, now: datetime | None = None
    ) -> list[Invitation]:
        stmt = (
            self._pending(now)
            .where(Invitation.tenant_id == tenant_id)
            .order_by(Invitation.created_at.desc(), Invitation.invitation_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def pending_exists(
        self, email: str, tenant_id: UUID, now: datetime | None = None
    ) -> bool:
        stmt = (
            self._pending(now)
            .where(
                func.lower(Invitation.email) == normalize_email(email),
                Invitation.tenant_id == tenant_id,
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first() is not None

    async def has_pending_for_email(self, email: str, now: datetime | None = None) -> bool:
        stmt = self._pending(now).where(
            func.lower(Invitation.email) == normalize_email(email)
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalars().first() is not None

    async def get_for_tenant(self, invitation_id: UUID, tenant_id: UUID) -> Invitation:
        """Get an invitation that belongs to the given tenant.

        Raises:
            InvitationNotFoundError: If absent or owned by another tenant
        """
        stmt = select(Invitation).where(
            Invitation.invitation_id == invitation_id,
            Invitation.tenant_id == tenant_id,
        )
        result = await self.db.execute(stmt)
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise InvitationNotFoundError(invitation_id)
        return invitation

    async def mark_accepted(
        self, invitation: Invitation, user_id: UUID, now: datetime | None = None
    ) -> bool:
        """Move a pending invitation to accepted.

        The update is conditional on the row still being pending, so a
        second writer racing on the same invitation changes nothing.

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(Invitation)
            .where(
                Invitation.invitation_id == invitation.invitation_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(
                status=InvitationStatus.ACCEPTED.value,
                accepted_at=now or utcnow(),
                accepted_by_user_id=user_id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        await self.db.refresh(invitation)
        return result.rowcount == 1

    async def mark_revoked(self, invitation: Invitation) -> bool:
        stmt = (
            update(Invitation)
            .where(
                Invitation.invitation_id == invitation.invitation_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(status=InvitationStatus.REVOKED.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        await self.db.refresh(invitation)
        return result.rowcount == 1
