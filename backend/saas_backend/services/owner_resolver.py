"""
Stripe customer owner resolution.

WHAT: Maps a Stripe customer ID to the local entity that is billed on it.

WHY: A customer can belong to an organization (organization billing) or
to a single user (individual billing). When both carry the same ID the
organization is authoritative, so it is always looked up first.

HOW: Owner is a tagged union of two frozen dataclasses. Callers branch
with isinstance() and never see a half-filled owner.
"""

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.core.exceptions import CustomerNotFoundError
from saas_backend.dao.organization import OrganizationDAO
from saas_backend.dao.user import UserDAO
from saas_backend.models.organization import Organization
from saas_backend.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrganizationOwner:
    """The customer bills an organization."""

    organization: Organization


@dataclass(frozen=True)
class UserOwner:
    """The customer bills an individual user."""

    user: User


Owner = Union[OrganizationOwner, UserOwner]


class OwnerResolver:
    """
    Resolves Stripe customer IDs to an Owner. Read-only.
    """

    def __init__(self, session: AsyncSession):
        self.org_dao = OrganizationDAO(session)
        self.user_dao = UserDAO(session)

    async def resolve(self, customer_id: str) -> Owner:
        """
        Find the owner of a Stripe customer.

        Args:
            customer_id: Stripe customer ID (cus_xxx)

        Returns:
            OrganizationOwner if an organization carries the ID, else UserOwner

        Raises:
            CustomerNotFoundError: If neither carries the ID (or it is empty)
        """
        org = await self.org_dao.get_by_stripe_customer_id(customer_id)
        if org is not None:
            logger.debug(
                f"Resolved customer {customer_id} to organization {org.id}",
                extra={"customer_id": customer_id, "org_id": org.id},
            )
            return OrganizationOwner(organization=org)

        user = await self.user_dao.get_by_stripe_customer_id(customer_id)
        if user is not None:
            logger.debug(
                f"Resolved customer {customer_id} to user {user.id}",
                extra={"customer_id": customer_id, "user_id": user.id},
            )
            return UserOwner(user=user)

        raise CustomerNotFoundError(customer_id=customer_id)
