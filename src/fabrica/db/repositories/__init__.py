"""Repositories over the membership store."""

from .base import BaseRepository
from .invitation import InvitationRepository
from .membership import MembershipRepository
from .rbac import RoleRepository
from .subscription import PlanRepository, SubscriptionRepository
from .tenant import TenantRepository
from .user import UserRepository, normalize_email

__all__ = [
    "BaseRepository",
    "InvitationRepository",
    "MembershipRepository",
    "PlanRepository",
    "RoleRepository",
    "SubscriptionRepository",
    "TenantRepository",
    "UserRepository",
    "normalize_email",
]
