"""Tenant model for multi-tenancy support."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableJSON, PortableUUID, TimestampMixin

# Slug of the platform tenant that must never be deleted
SYSTEM_TENANT_SLUG = "system"


class Tenant(TimestampMixin, Base):
    """Tenant (customer organization) in the system.

    A tenant is created directly by a system administrator or by its
    future owner through onboarding. onboarding_step tracks how far the
    owner got through the onboarding workflow (0..4).
    """

    __tablename__ = "tenants"

    tenant_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_media_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    settings: Mapped[dict[str, Any]] = mapped_column(PortableJSON(), default=dict, nullable=False)

    # Status
    is_personal: Mapped[bool] = mapped_column(default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Onboarding
    owner_user_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    onboarding_completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    onboarding_step: Mapped[int] = mapped_column(default=0, nullable=False)

    created_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)
    updated_by: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    __table_args__ = (
        CheckConstraint("onboarding_step BETWEEN 0 AND 4", name="onboarding_step_range"),
        Index("idx_tenant_owner_onboarding", "owner_user_id", "onboarding_completed"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.tenant_id}, name={self.name})>"
