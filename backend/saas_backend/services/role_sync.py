"""
User role synchronization from subscription status.

WHAT: Promotes paying users to PREMIUM and returns lapsed ones to USER.

WHY: Access control reads the role column, so it must follow the user's
individual subscription. ADMIN and SUPER_ADMIN are assigned by operators
and billing never changes them, whatever the subscription says.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.dao.user import UserDAO
from saas_backend.models.subscription import ACCESS_GRANTING_STATUSES
from saas_backend.models.user import UserRole

logger = logging.getLogger(__name__)


def role_for_status(status: str) -> UserRole:
    """
    Role a non-admin user should hold for a subscription status.

    active, trialing and past_due (grace period) grant PREMIUM. Every other
    status, including ones Stripe adds later and "", maps to USER.
    """
    if status in ACCESS_GRANTING_STATUSES:
        return UserRole.PREMIUM
    return UserRole.USER


class RoleSynchronizer:
    """
    Applies role_for_status() to a stored user.
    """

    def __init__(self, session: AsyncSession):
        self.user_dao = UserDAO(session)

    async def sync(self, user_id: int, status: str) -> None:
        """
        Bring a user's role in line with a subscription status.

        Writes only when the role actually changes.

        Args:
            user_id: User to update
            status: Stripe subscription status
        """
        user = await self.user_dao.get_by_id(user_id)
        if user is None:
            logger.warning(
                f"Role sync skipped, user {user_id} not found",
                extra={"user_id": user_id, "status": status},
            )
            return

        current = UserRole(user.role)
        if current.is_protected:
            logger.debug(
                f"Role sync skipped for protected role {current.value}",
                extra={"user_id": user_id, "role": current.value},
            )
            return

        target = role_for_status(status)
        if target == current:
            return

        await self.user_dao.set_role(user, target)
        logger.info(
            f"Changed role of user {user_id} from {current.value} to {target.value}",
            extra={
                "user_id": user_id,
                "old_role": current.value,
                "new_role": target.value,
                "status": status,
            },
        )
