"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from saas_backend.dao.base import BaseDAO
from saas_backend.dao.user import UserDAO
from saas_backend.dao.organization import OrganizationDAO, OrganizationMemberDAO
from saas_backend.dao.subscription import SubscriptionDAO
from saas_backend.dao.usage import UsagePeriodDAO

__all__ = [
    "BaseDAO",
    "UserDAO",
    "OrganizationDAO",
    "OrganizationMemberDAO",
    "SubscriptionDAO",
    "UsagePeriodDAO",
]
