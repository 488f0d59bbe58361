"""
User Data Access Object.

WHY: UserDAO provides database operations for User model, following
the DAO pattern for separation of concerns and testability.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.dao.base import BaseDAO
from saas_backend.models.base import utc_now
from saas_backend.models.user import User, UserRole


class UserDAO(BaseDAO[User]):
    """
    Data Access Object for User model.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(User, session)

    async def get_by_stripe_customer_id(self, customer_id: str) -> Optional[User]:
        """
        Retrieve the user bound to a Stripe customer.

        Args:
            customer_id: Stripe customer ID (cus_xxx)

        Returns:
            User if found, None otherwise (always None for an empty ID)
        """
        if not customer_id:
            return None
        return await self.get_by_field("stripe_customer_id", customer_id)

    async def set_role(self, user: User, role: UserRole) -> User:
        """
        Change a user's role and bump updated_at.

        Args:
            user: Loaded user instance
            role: New role

        Returns:
            Updated user
        """
        return await self.update_instance(user, role=role, updated_at=utc_now())
