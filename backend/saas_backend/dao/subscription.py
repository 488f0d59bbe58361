"""
Subscription Data Access Object (DAO).

WHAT: DAO for managing subscription records in the database.

WHY: Subscriptions mirror Stripe billing state. Every webhook that
touches a subscription goes through this DAO:
1. Inserting a row for customer.subscription.created
2. Overwriting provider state for customer.subscription.updated
3. Marking rows canceled or past due

HOW: Extends BaseDAO with lookups by Stripe subscription ID and
field-level updates that leave unrelated columns alone.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.dao.base import BaseDAO
from saas_backend.models.base import utc_now
from saas_backend.models.subscription import Subscription, SubscriptionStatus


class SubscriptionDAO(BaseDAO[Subscription]):
    """
    Data Access Object for Subscription model.

    WHAT: Handles all database operations for subscriptions.

    WHY: Centralizes subscription queries for Stripe webhook processing
    and the subscription lifecycle.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize SubscriptionDAO.

        Args:
            session: Async database session
        """
        super().__init__(Subscription, session)

    async def get_by_stripe_subscription_id(
        self, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """
        Get subscription by Stripe subscription ID.

        WHY: Essential for webhook processing. When Stripe sends events,
        we need to find the corresponding subscription in our database.

        HOW: Direct lookup by stripe_subscription_id which is unique.

        Args:
            stripe_subscription_id: Stripe subscription ID (sub_xxx)

        Returns:
            Subscription if found, None otherwise
        """
        if not stripe_subscription_id:
            return None
        result = await self.session.execute(
            select(Subscription).where(
                Subscription.stripe_subscription_id == stripe_subscription_id
            )
        )
        return result.scalar_one_or_none()

    async def create_from_stripe(
        self,
        user_id: int,
        stripe_subscription_id: str,
        stripe_price_id: str,
        status: str,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        cancel_at_period_end: bool = False,
        organization_id: Optional[int] = None,
    ) -> Subscription:
        """
        Insert a subscription reported by Stripe.

        WHY: The unique index on stripe_subscription_id is the idempotency
        guard. A duplicate delivery raises instead of adding a second row.

        Args:
            user_id: Owning user (billing contact for organizations)
            stripe_subscription_id: Stripe subscription ID
            stripe_price_id: Price of the first item ("" when none)
            status: Stripe status, stored verbatim
            current_period_start: Start of current billing period
            current_period_end: End of current billing period
            cancel_at_period_end: Whether the subscription ends at period end
            organization_id: Owning organization for organization billing

        Returns:
            Created Subscription

        Raises:
            IntegrityError: If the Stripe subscription ID already exists
        """
        return await self.create(
            user_id=user_id,
            organization_id=organization_id,
            stripe_subscription_id=stripe_subscription_id,
            stripe_price_id=stripe_price_id,
            status=status,
            current_period_start=current_period_start,
            current_period_end=current_period_end,
            cancel_at_period_end=cancel_at_period_end,
        )

    async def update_from_stripe_event(
        self,
        subscription: Subscription,
        status: str,
        stripe_price_id: str,
        current_period_start: Optional[datetime],
        current_period_end: Optional[datetime],
        cancel_at_period_end: bool,
        canceled_at: Optional[datetime] = None,
    ) -> Subscription:
        """
        Overwrite subscription state from a Stripe update.

        WHAT: Replaces status, price, period and cancellation flag.

        WHY: Stripe is the source of truth; applying the same update twice
        leaves the row unchanged. canceled_at is only written when Stripe
        reports one, so an earlier cancellation time is never erased.

        Returns:
            Updated Subscription
        """
        changes = {
            "status": status,
            "stripe_price_id": stripe_price_id,
            "current_period_start": current_period_start,
            "current_period_end": current_period_end,
            "cancel_at_period_end": cancel_at_period_end,
            "updated_at": utc_now(),
        }
        if canceled_at is not None:
            changes["canceled_at"] = canceled_at

        return await self.update_instance(subscription, **changes)

    async def mark_canceled(self, subscription: Subscription) -> Subscription:
        """
        Force a subscription to CANCELED.

        WHY: Deleted Stripe subscriptions are kept for history, not removed.
        """
        now = utc_now()
        return await self.update_instance(
            subscription,
            status=SubscriptionStatus.CANCELED.value,
            canceled_at=now,
            updated_at=now,
        )

    async def mark_past_due(self, subscription: Subscription) -> Subscription:
        """
        Force a subscription to PAST_DUE after a failed invoice payment.
        """
        return await self.update_instance(
            subscription,
            status=SubscriptionStatus.PAST_DUE.value,
            updated_at=utc_now(),
        )
