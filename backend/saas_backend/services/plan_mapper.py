"""
Stripe price to plan tier mapping.

WHY: Plan tiers gate organization features and usage quotas. They are
never chosen by users; they follow the Stripe price of the active
subscription.
"""

from dataclasses import dataclass

from saas_backend.models.organization import OrganizationPlan


@dataclass(frozen=True)
class PlanMapper:
    """
    Pure mapping from a Stripe price ID to an OrganizationPlan.

    Rules, in order:
    1. "" (no subscription item) -> FREE
    2. the enterprise price -> ENTERPRISE
    3. the premium price -> PRO
    4. any other price -> PRO

    A configured price ID that is empty never matches anything.
    """

    premium_price_id: str = ""
    enterprise_price_id: str = ""

    def map_plan(self, price_id: str) -> OrganizationPlan:
        if not price_id:
            return OrganizationPlan.FREE

        if self.enterprise_price_id and price_id == self.enterprise_price_id:
            return OrganizationPlan.ENTERPRISE

        if self.premium_price_id and price_id == self.premium_price_id:
            return OrganizationPlan.PRO

        # Any paid price without a specific mapping counts as PRO
        return OrganizationPlan.PRO
