"""
Subscription synchronization from Stripe events.

WHAT: Applies customer.subscription.* and invoice.payment_failed events to
the local Subscription, Organization plan and User role.

WHY: Stripe delivers events at least once, possibly out of order and
possibly for customers we do not know. Every handler therefore:
1. Looks up local state by Stripe IDs and raises a specific error when
   it is missing, instead of inventing rows
2. Overwrites state rather than computing deltas, so a replayed event
   leaves the same result
3. Relies on the unique stripe_subscription_id to reject a second create

HOW: The synchronizer only flushes. The caller owns the transaction and
commits or rolls back all writes of one event together. Usage-limit
changes are returned as UsageUpdate entries and run after the commit.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.core.exceptions import (
    DuplicateSubscriptionError,
    OrganizationOwnerNotFoundError,
    SubscriptionNotFoundError,
)
from saas_backend.dao.organization import OrganizationDAO, OrganizationMemberDAO
from saas_backend.dao.subscription import SubscriptionDAO
from saas_backend.models.base import from_unix
from saas_backend.models.organization import Organization
from saas_backend.models.subscription import Subscription, SubscriptionStatus
from saas_backend.models.user import User
from saas_backend.schemas.stripe_events import InvoiceObject, SubscriptionObject
from saas_backend.services.owner_resolver import OrganizationOwner, OwnerResolver
from saas_backend.services.plan_mapper import PlanMapper
from saas_backend.services.role_sync import RoleSynchronizer
from saas_backend.services.usage_service import UsageUpdate

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """
    Outcome of applying one event.

    subscription_id is the local row that was written, if any.
    usage_updates must run only after the event's writes are committed.
    """

    subscription_id: Optional[int] = None
    usage_updates: List[UsageUpdate] = field(default_factory=list)


class SubscriptionSynchronizer:
    """
    Mirrors Stripe subscription state into the database.
    """

    def __init__(self, session: AsyncSession, plan_mapper: PlanMapper):
        self.session = session
        self.plan_mapper = plan_mapper
        self.subscription_dao = SubscriptionDAO(session)
        self.org_dao = OrganizationDAO(session)
        self.member_dao = OrganizationMemberDAO(session)
        self.owner_resolver = OwnerResolver(session)
        self.role_sync = RoleSynchronizer(session)

    # ------------------------------------------------------------------
    # customer.subscription.created
    # ------------------------------------------------------------------

    async def handle_created(self, sub: SubscriptionObject) -> SyncResult:
        """
        Insert the local subscription for a new Stripe subscription.

        WHAT:
        - Organization customer: the row is billed to the organization's
          owner, and the organization's plan and subscription ID are set
        - User customer: the row is billed to the user, whose role and
          usage limits then follow the subscription

        Raises:
            CustomerNotFoundError: Unknown customer
            OrganizationOwnerNotFoundError: Organization has no owner member
            DuplicateSubscriptionError: Subscription already recorded
        """
        logger.info(
            f"Subscription {sub.id} created for customer {sub.customer}",
            extra={
                "subscription_id": sub.id,
                "customer_id": sub.customer,
                "status": sub.status,
            },
        )

        owner = await self.owner_resolver.resolve(sub.customer)
        price_id = sub.price_id

        if isinstance(owner, OrganizationOwner):
            return await self._create_for_organization(owner.organization, sub, price_id)
        return await self._create_for_user(owner.user, sub, price_id)

    async def _create_for_organization(
        self, org: Organization, sub: SubscriptionObject, price_id: str
    ) -> SyncResult:
        org_id = org.id
        owner_member = await self.member_dao.get_owner(org_id)
        if owner_member is None:
            raise OrganizationOwnerNotFoundError(
                org_id=org_id,
                subscription_id=sub.id,
                customer_id=sub.customer,
            )

        subscription = await self._insert(sub, price_id, owner_member.user_id, org_id)

        plan = self.plan_mapper.map_plan(price_id)
        await self.org_dao.apply_plan(org, plan, stripe_subscription_id=sub.id)

        logger.info(
            f"Organization {org_id} moved to plan {plan.value}",
            extra={"org_id": org_id, "plan": plan.value, "subscription_id": sub.id},
        )
        return SyncResult(subscription_id=subscription.id)

    async def _create_for_user(
        self, user: User, sub: SubscriptionObject, price_id: str
    ) -> SyncResult:
        user_id = user.id
        subscription = await self._insert(sub, price_id, user_id, None)

        await self.role_sync.sync(user_id, sub.status)

        logger.info(
            f"Subscription {sub.id} recorded for user {user_id}",
            extra={"user_id": user_id, "subscription_id": sub.id},
        )
        return SyncResult(
            subscription_id=subscription.id,
            usage_updates=[UsageUpdate(user_id=user_id, price_id=price_id)],
        )

    async def _insert(
        self,
        sub: SubscriptionObject,
        price_id: str,
        user_id: int,
        organization_id: Optional[int],
    ) -> Subscription:
        try:
            return await self.subscription_dao.create_from_stripe(
                user_id=user_id,
                organization_id=organization_id,
                stripe_subscription_id=sub.id,
                stripe_price_id=price_id,
                status=sub.status,
                current_period_start=from_unix(sub.current_period_start),
                current_period_end=from_unix(sub.current_period_end),
                cancel_at_period_end=sub.cancel_at_period_end,
            )
        except IntegrityError as e:
            raise DuplicateSubscriptionError(
                subscription_id=sub.id,
                customer_id=sub.customer,
            ) from e

    # ------------------------------------------------------------------
    # customer.subscription.updated
    # ------------------------------------------------------------------

    async def handle_updated(self, sub: SubscriptionObject) -> SyncResult:
        """
        Overwrite the local subscription with Stripe's current state.

        WHY: Never creates a row. An update for an unknown subscription is
        an out-of-order or foreign delivery and is reported, not repaired.

        Raises:
            SubscriptionNotFoundError: No local row for the subscription
        """
        subscription = await self._get_existing(sub.id, sub.customer)
        price_id = sub.price_id

        await self.subscription_dao.update_from_stripe_event(
            subscription,
            status=sub.status,
            stripe_price_id=price_id,
            current_period_start=from_unix(sub.current_period_start),
            current_period_end=from_unix(sub.current_period_end),
            cancel_at_period_end=sub.cancel_at_period_end,
            canceled_at=from_unix(sub.canceled_at),
        )

        logger.info(
            f"Subscription {sub.id} updated to {sub.status}",
            extra={
                "subscription_id": sub.id,
                "status": sub.status,
                "cancel_at_period_end": sub.cancel_at_period_end,
            },
        )

        result = SyncResult(subscription_id=subscription.id)
        if subscription.is_organization_owned:
            await self._set_organization_plan(subscription.organization_id, price_id)
        else:
            await self.role_sync.sync(subscription.user_id, sub.status)
            result.usage_updates.append(
                UsageUpdate(user_id=subscription.user_id, price_id=price_id)
            )
        return result

    # ------------------------------------------------------------------
    # customer.subscription.deleted
    # ------------------------------------------------------------------

    async def handle_deleted(self, sub: SubscriptionObject) -> SyncResult:
        """
        Mark the local subscription canceled and revoke what it granted.

        WHAT: The row is kept as CANCELED. Organizations drop to FREE and
        lose their subscription pointer; users drop to USER (unless
        protected) and their usage limits go back to the free tier.

        Raises:
            SubscriptionNotFoundError: No local row for the subscription
        """
        subscription = await self._get_existing(sub.id, sub.customer)

        await self.subscription_dao.mark_canceled(subscription)

        logger.info(
            f"Subscription {sub.id} canceled",
            extra={"subscription_id": sub.id, "customer_id": sub.customer},
        )

        result = SyncResult(subscription_id=subscription.id)
        if subscription.is_organization_owned:
            org = await self.org_dao.get_by_id(subscription.organization_id)
            if org is None:
                logger.warning(
                    f"Organization {subscription.organization_id} not found for "
                    f"canceled subscription {sub.id}",
                    extra={
                        "org_id": subscription.organization_id,
                        "subscription_id": sub.id,
                    },
                )
                return result
            await self.org_dao.downgrade_to_free(org)
            logger.info(
                f"Organization {org.id} downgraded to free",
                extra={"org_id": org.id, "subscription_id": sub.id},
            )
        else:
            await self.role_sync.sync(subscription.user_id, SubscriptionStatus.CANCELED.value)
            result.usage_updates.append(UsageUpdate(user_id=subscription.user_id, price_id=""))
        return result

    # ------------------------------------------------------------------
    # invoice.payment_failed
    # ------------------------------------------------------------------

    async def handle_payment_failed(self, invoice: InvoiceObject) -> SyncResult:
        """
        Move the invoiced subscription to PAST_DUE.

        WHY: One-off invoices carry no subscription and are ignored.
        PAST_DUE still grants access while Stripe retries the payment, so
        roles and plans are left alone.

        Raises:
            SubscriptionNotFoundError: Invoice references an unknown subscription
        """
        if not invoice.subscription:
            logger.debug(
                f"Invoice {invoice.id} has no subscription, nothing to update",
                extra={"invoice_id": invoice.id, "customer_id": invoice.customer},
            )
            return SyncResult()

        subscription = await self._get_existing(invoice.subscription, invoice.customer)
        await self.subscription_dao.mark_past_due(subscription)

        logger.warning(
            f"Payment failed for subscription {invoice.subscription}",
            extra={
                "invoice_id": invoice.id,
                "subscription_id": invoice.subscription,
                "customer_id": invoice.customer,
            },
        )
        return SyncResult(subscription_id=subscription.id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_existing(
        self, stripe_subscription_id: str, customer_id: Optional[str]
    ) -> Subscription:
        subscription = await self.subscription_dao.get_by_stripe_subscription_id(
            stripe_subscription_id
        )
        if subscription is None:
            raise SubscriptionNotFoundError(
                subscription_id=stripe_subscription_id,
                customer_id=customer_id,
            )
        return subscription

    async def _set_organization_plan(self, organization_id: int, price_id: str) -> None:
        org = await self.org_dao.get_by_id(organization_id)
        if org is None:
            logger.warning(
                f"Organization {organization_id} not found for plan update",
                extra={"org_id": organization_id, "price_id": price_id},
            )
            return

        plan = self.plan_mapper.map_plan(price_id)
        await self.org_dao.apply_plan(org, plan)
        logger.info(
            f"Organization {organization_id} moved to plan {plan.value}",
            extra={"org_id": organization_id, "plan": plan.value},
        )
