"""Membership model linking users to tenants."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime, utcnow


class TenantRole(str, Enum):
    """Role a user holds within a tenant."""

    OWNER = "owner"
    MEMBER = "member"
    SYSTEM_ADMIN = "system_admin"  # synthetic, never stored


STORED_ROLES = frozenset({TenantRole.OWNER, TenantRole.MEMBER})


class Membership(TimestampMixin, Base):
    """A user's role in a tenant.

    There is exactly one row per (user, tenant) pair. Removing a user
    deactivates the row and re-adding reactivates it.
    """

    __tablename__ = "memberships"

    membership_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("tenants.tenant_id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=TenantRole.MEMBER.value)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    granted_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    revoked_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id"),
        Index("idx_membership_tenant", "tenant_id"),
    )

    @validates("role")
    def validate_role(self, key: str, value: TenantRole | str) -> str:
        role = TenantRole(value)
        if role not in STORED_ROLES:
            raise ValueError(f"Role '{role.value}' cannot be stored on a membership")
        return role.value

    def __repr__(self) -> str:
        return (
            f"<Membership(user={self.user_id}, tenant={self.tenant_id}, "
            f"role={self.role}, active={self.is_active})>"
        )
