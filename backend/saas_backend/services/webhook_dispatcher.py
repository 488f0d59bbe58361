"""
Stripe event routing.

WHAT: Sends a verified, decoded event to the handler for its type.

WHY: Stripe sends many more event types than billing sync cares about.
Those are acknowledged with a debug log so Stripe stops retrying them.
"""

import logging
from typing import Awaitable, Callable, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.schemas.stripe_events import (
    CheckoutSessionObject,
    StripeEventType,
    WebhookEvent,
)
from saas_backend.services.owner_resolver import OrganizationOwner, OwnerResolver
from saas_backend.services.plan_mapper import PlanMapper
from saas_backend.services.subscription_sync import SubscriptionSynchronizer, SyncResult

logger = logging.getLogger(__name__)


Handler = Callable[[WebhookEvent], Awaitable[SyncResult]]


class EventDispatcher:
    """
    Routes events to SubscriptionSynchronizer handlers.

    Errors raised by handlers propagate to the caller, which decides how
    they are logged and whether the transaction is kept.
    """

    def __init__(self, session: AsyncSession, plan_mapper: PlanMapper):
        self.synchronizer = SubscriptionSynchronizer(session, plan_mapper)
        self.owner_resolver = OwnerResolver(session)
        self._handlers: Dict[str, Handler] = {
            StripeEventType.CHECKOUT_SESSION_COMPLETED.value: self._checkout_completed,
            StripeEventType.SUBSCRIPTION_CREATED.value: self._subscription_created,
            StripeEventType.SUBSCRIPTION_UPDATED.value: self._subscription_updated,
            StripeEventType.SUBSCRIPTION_DELETED.value: self._subscription_deleted,
            StripeEventType.INVOICE_PAYMENT_FAILED.value: self._payment_failed,
        }

    async def dispatch(self, event: WebhookEvent) -> SyncResult:
        """
        Run the handler registered for the event type.

        Returns:
            SyncResult of the handler, empty for unhandled types
        """
        handler = self._handlers.get(event.type)
        if handler is None or event.payload is None:
            logger.debug(
                f"Unhandled webhook event type {event.type}",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return SyncResult()

        return await handler(event)

    async def _checkout_completed(self, event: WebhookEvent) -> SyncResult:
        # Subscription rows are written by the customer.subscription.* events
        session: CheckoutSessionObject = event.payload
        owner = await self.owner_resolver.resolve(session.customer or "")

        if isinstance(owner, OrganizationOwner):
            owner_extra = {"org_id": owner.organization.id}
            owner_label = f"organization {owner.organization.id}"
        else:
            owner_extra = {"user_id": owner.user.id}
            owner_label = f"user {owner.user.id}"

        logger.info(
            f"Checkout completed for {owner_label}",
            extra={
                "event_id": event.id,
                "session_id": session.id,
                "customer_id": session.customer,
                "subscription_id": session.subscription,
                **owner_extra,
            },
        )
        return SyncResult()

    async def _subscription_created(self, event: WebhookEvent) -> SyncResult:
        return await self.synchronizer.handle_created(event.payload)

    async def _subscription_updated(self, event: WebhookEvent) -> SyncResult:
        return await self.synchronizer.handle_updated(event.payload)

    async def _subscription_deleted(self, event: WebhookEvent) -> SyncResult:
        return await self.synchronizer.handle_deleted(event.payload)

    async def _payment_failed(self, event: WebhookEvent) -> SyncResult:
        return await self.synchronizer.handle_payment_failed(event.payload)
