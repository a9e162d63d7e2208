"""Subscription plan and tenant subscription models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, PortableUUID, TimestampMixin, UTCDateTime


class BillingInterval(str, Enum):
    MONTH = "month"
    YEAR = "year"


class SubscriptionStatus(str, Enum):
    """A subscription is pending until a payment method is attached."""

    PENDING = "pending"
    ACTIVE = "active"


class SubscriptionPlan(TimestampMixin, Base):
    """A purchasable plan offered during onboarding."""

    __tablename__ = "subscription_plans"

    plan_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_cents: Mapped[int] = mapped_column(default=0, nullable=False)
    billing_interval: Mapped[str] = mapped_column(
        String(20), default=BillingInterval.MONTH.value, nullable=False
    )
    max_users: Mapped[int | None] = mapped_column(nullable=True)
    max_products: Mapped[int | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    display_order: Mapped[int] = mapped_column(default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan(id={self.plan_id}, name={self.name})>"


class Subscription(TimestampMixin, Base):
    """A tenant's plan and billing state. One per tenant.

    Payment references are opaque strings from the payment processor;
    they are recorded but never interpreted here.
    """

    __tablename__ = "subscriptions"

    subscription_id: Mapped[UUID] = mapped_column(
        PortableUUID(), primary_key=True, default=uuid4
    )
    tenant_id: Mapped[UUID] = mapped_column(
        PortableUUID(),
        ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    plan_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("subscription_plans.plan_id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionStatus.PENDING.value, nullable=False
    )

    payment_customer_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    trial_ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    canceled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (Index("idx_subscription_plan", "plan_id"),)

    @property
    def has_payment_method(self) -> bool:
        return bool(self.payment_method_ref and self.payment_method_ref.strip())

    def __repr__(self) -> str:
        return (
            f"<Subscription(tenant={self.tenant_id}, plan={self.plan_id}, "
            f"status={self.status})>"
        )
