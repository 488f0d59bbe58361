"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from saas_backend.models.base import Base, TimestampMixin, PrimaryKeyMixin
from saas_backend.models.user import User, UserRole
from saas_backend.models.organization import (
    Organization,
    OrganizationMember,
    OrganizationPlan,
    OrganizationRole,
    MemberStatus,
)
from saas_backend.models.subscription import (
    Subscription,
    SubscriptionStatus,
    ACCESS_GRANTING_STATUSES,
)
from saas_backend.models.usage import UsagePeriod

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "User",
    "UserRole",
    "Organization",
    "OrganizationMember",
    "OrganizationPlan",
    "OrganizationRole",
    "MemberStatus",
    "Subscription",
    "SubscriptionStatus",
    "ACCESS_GRANTING_STATUSES",
    "UsagePeriod",
]
