"""Invitation model for joining a tenant by email."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime


class InvitationStatus(str, Enum):
    """Lifecycle of an invitation.

    pending -> accepted and pending -> revoked are the only transitions.
    EXPIRED is never written; expiry is evaluated against expires_at.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class Invitation(TimestampMixin, Base):
    """An offer for an email address to join a tenant as a member."""

    __tablename__ = "invitations"

    invitation_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("tenants.tenant_id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[UUID] = mapped_column(PortableUUID(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvitationStatus.PENDING.value
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    accepted_by_user_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    __table_args__ = (
        Index("idx_invitation_tenant_status", "tenant_id", "status"),
    )

    @validates("email")
    def normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.PENDING

    def __repr__(self) -> str:
        return (
            f"<Invitation(id={self.invitation_id}, email={self.email}, "
            f"tenant={self.tenant_id}, status={self.status})>"
        )


Index("idx_invitation_email_status", func.lower(Invitation.email), Invitation.status)
