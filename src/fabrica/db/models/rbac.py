"""Global role and permission models.

These roles are platform-wide (e.g. "Viewer") and independent of the
per-tenant owner/member role held on a Membership.
"""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime, utcnow


class Role(TimestampMixin, Base):
    __tablename__ = "roles"

    role_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Role(name={self.name})>"


class Permission(TimestampMixin, Base):
    """A named capability, conventionally "resource:action"."""

    __tablename__ = "permissions"

    permission_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Permission(name={self.name})>"


class RolePermission(Base):
    __tablename__ = "role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("roles.role_id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[UUID] = mapped_column(
        PortableUUID(),
        ForeignKey("permissions.permission_id", ondelete="CASCADE"),
        primary_key=True,
    )


class UserRole(Base):
    """Assignment of a global role to a user, optionally within one tenant."""

    __tablename__ = "user_roles"

    user_role_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    role_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("roles.role_id", ondelete="CASCADE"), nullable=False
    )
    tenant_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("tenants.tenant_id", ondelete="CASCADE"), nullable=True
    )
    granted_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    granted_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "role_id", "tenant_id"),)
