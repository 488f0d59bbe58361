"""
Subscription model for tracking Stripe billing state.

WHY: Stripe is the source of truth for billing; this table is the local
mirror that webhook events keep in sync:
1. One row per Stripe subscription (stripe_subscription_id is unique)
2. Always owned by a user, optionally by an organization
3. Never deleted; a deleted Stripe subscription is kept as CANCELED

SECURITY:
- Rows are only created or changed from signature-verified webhooks
- The unique Stripe ID makes duplicate deliveries fail instead of
  producing a second row
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Boolean,
)
from sqlalchemy.orm import relationship

from saas_backend.models.base import Base, TimestampMixin, PrimaryKeyMixin


class SubscriptionStatus(str, enum.Enum):
    """
    Subscription status values known to the application (mirrors Stripe).

    WHY: The column itself is a plain string so statuses Stripe adds later
    are stored verbatim. This enum names the ones we act on.

    Statuses:
    - TRIALING: Free trial period
    - ACTIVE: Payment successful, full access
    - PAST_DUE: Payment failed, grace period
    - CANCELED: Subscription ended
    - UNPAID: Multiple payment failures, access revoked
    - INCOMPLETE: Initial payment pending
    - INCOMPLETE_EXPIRED: Initial payment failed
    - PAUSED: Subscription paused
    """

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"


# Statuses that grant paid access
# WHY: PAST_DUE is included as a grace period while Stripe retries payment
ACCESS_GRANTING_STATUSES = frozenset(
    {
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.TRIALING.value,
        SubscriptionStatus.PAST_DUE.value,
    }
)


class Subscription(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Subscription model mirroring one Stripe subscription.

    RELATIONS:
    - Many-to-one with User (always set; the billing contact)
    - Many-to-one with Organization (set for organization billing)

    LIFECYCLE:
    1. customer.subscription.created -> row inserted
    2. customer.subscription.updated / invoice.payment_failed -> row updated
    3. customer.subscription.deleted -> status CANCELED, row retained
    """

    __tablename__ = "subscriptions"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Stripe identifiers
    stripe_subscription_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        doc="Stripe subscription ID (sub_xxx)",
    )
    stripe_price_id = Column(
        String(255),
        nullable=False,
        default="",
        doc="Stripe price ID of the first subscription item",
    )

    status = Column(
        String(50),
        nullable=False,
        doc="Stripe subscription status, stored verbatim",
    )

    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)

    # Cancellation
    # WHY: cancel_at_period_end keeps access until the period ends;
    # canceled_at records when the cancellation happened
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="subscriptions")
    organization = relationship("Organization", back_populates="subscriptions")

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, stripe_id={self.stripe_subscription_id}, "
            f"status={self.status})>"
        )

    @property
    def is_organization_owned(self) -> bool:
        """True when the subscription bills an organization."""
        return bool(self.organization_id)

    @property
    def grants_access(self) -> bool:
        """Check if the current status grants paid access."""
        return self.status in ACCESS_GRANTING_STATUSES
