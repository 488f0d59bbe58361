"""
Organization Data Access Objects.

WHAT: DAOs for organizations and their memberships.

WHY: Billing needs three organization queries:
1. Resolve a Stripe customer to an organization
2. Find the owner membership that acts as billing contact
3. Move the organization between plan tiers
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.dao.base import BaseDAO
from saas_backend.models.organization import (
    Organization,
    OrganizationMember,
    OrganizationPlan,
    OrganizationRole,
)


class OrganizationDAO(BaseDAO[Organization]):
    """
    Data Access Object for Organization model.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Organization, session)

    async def get_by_stripe_customer_id(self, customer_id: str) -> Optional[Organization]:
        """
        Retrieve the organization bound to a Stripe customer.

        Args:
            customer_id: Stripe customer ID (cus_xxx)

        Returns:
            Organization if found, None otherwise (always None for an empty ID)
        """
        if not customer_id:
            return None
        return await self.get_by_field("stripe_customer_id", customer_id)

    async def apply_plan(
        self,
        org: Organization,
        plan: OrganizationPlan,
        stripe_subscription_id: Optional[str] = None,
    ) -> Organization:
        """
        Set the organization's plan tier.

        WHAT: Updates plan, and the subscription pointer when one is given.

        Args:
            org: Loaded organization
            plan: New plan tier
            stripe_subscription_id: Current Stripe subscription, if it changed

        Returns:
            Updated organization
        """
        changes = {"plan": plan}
        if stripe_subscription_id is not None:
            changes["stripe_subscription_id"] = stripe_subscription_id
        return await self.update_instance(org, **changes)

    async def downgrade_to_free(self, org: Organization) -> Organization:
        """
        Reset the organization to the FREE plan and clear its subscription.

        WHY: Called when the organization's subscription is deleted.
        Name, slug and settings are left untouched.
        """
        return await self.update_instance(
            org,
            plan=OrganizationPlan.FREE,
            stripe_subscription_id=None,
        )


class OrganizationMemberDAO(BaseDAO[OrganizationMember]):
    """
    Data Access Object for OrganizationMember model.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(OrganizationMember, session)

    async def get_owner(self, organization_id: int) -> Optional[OrganizationMember]:
        """
        Get the owner membership of an organization.

        WHY: Organization subscriptions are recorded against the owner's
        user ID. The oldest owner wins if there are several.

        Returns:
            OrganizationMember with OWNER role, or None
        """
        result = await self.session.execute(
            select(OrganizationMember)
            .where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.role == OrganizationRole.OWNER,
            )
            .order_by(OrganizationMember.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
