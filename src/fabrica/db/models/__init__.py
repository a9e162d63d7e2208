"""Database models for Fabrica."""

from .audit import AuditEvent, AuditEventType, AuditSeverity
from .base import Base, PortableJSON, PortableUUID, TimestampMixin, UTCDateTime, utcnow
from .invitation import Invitation, InvitationStatus
from .membership import STORED_ROLES, Membership, TenantRole
from .rbac import Permission, Role, RolePermission, UserRole
from .subscription import BillingInterval, Subscription, SubscriptionPlan, SubscriptionStatus
from .tenant import SYSTEM_TENANT_SLUG, Tenant
from .user import User

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditSeverity",
    "Base",
    "BillingInterval",
    "Invitation",
    "InvitationStatus",
    "Membership",
    "Permission",
    "PortableJSON",
    "PortableUUID",
    "Role",
    "RolePermission",
    "STORED_ROLES",
    "SYSTEM_TENANT_SLUG",
    "Subscription",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "Tenant",
    "TenantRole",
    "TimestampMixin",
    "UTCDateTime",
    "User",
    "UserRole",
    "utcnow",
]
