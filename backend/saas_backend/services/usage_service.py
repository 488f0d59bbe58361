"""
Usage limit service.

WHAT: Keeps a user's metered quotas in line with their subscription tier.

WHY: When a subscription is created, changes price or ends, the monthly
quotas must follow. Metering is secondary to billing: a failure here is
logged and never undoes the subscription, role or plan changes that were
already committed.

HOW:
- UsageService is the collaborator that owns the limits. It maps the
  price to a tier with the PlanMapper and upserts the current calendar
  month's UsagePeriod with that tier's limits.
- UsageLimitSynchronizer runs one update in its own transaction after the
  billing writes have been committed, and contains any failure.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Protocol, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.core.exceptions import UsageSyncError
from saas_backend.dao.usage import UsagePeriodDAO
from saas_backend.models.base import utc_now
from saas_backend.models.organization import OrganizationPlan
from saas_backend.services.plan_mapper import PlanMapper

logger = logging.getLogger(__name__)


# ============================================================================
# Tier Limits
# ============================================================================


@dataclass(frozen=True)
class UsageLimits:
    """
    Monthly quotas for one tier.
    """

    api_calls: int
    storage_bytes: int
    compute_ms: int
    file_uploads: int

    def scaled(self, factor: int) -> "UsageLimits":
        return UsageLimits(
            api_calls=self.api_calls * factor,
            storage_bytes=self.storage_bytes * factor,
            compute_ms=self.compute_ms * factor,
            file_uploads=self.file_uploads * factor,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "api_calls": self.api_calls,
            "storage_bytes": self.storage_bytes,
            "compute_ms": self.compute_ms,
            "file_uploads": self.file_uploads,
        }


FREE_LIMITS = UsageLimits(
    api_calls=10_000,
    storage_bytes=1_073_741_824,  # 1 GiB
    compute_ms=3_600_000,  # 1 hour
    file_uploads=100,
)

TIER_LIMITS: Dict[OrganizationPlan, UsageLimits] = {
    OrganizationPlan.FREE: FREE_LIMITS,
    OrganizationPlan.PRO: FREE_LIMITS.scaled(10),
    OrganizationPlan.ENTERPRISE: FREE_LIMITS.scaled(100),
}


def current_billing_period(today: Optional[date] = None) -> Tuple[date, date]:
    """
    First and last day of the calendar month containing today (UTC).
    """
    if today is None:
        today = utc_now().date()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


# ============================================================================
# Collaborator
# ============================================================================


class UsageLimitUpdater(Protocol):
    """
    Anything that can move a user's quotas to match a Stripe price.
    """

    async def update_user_limits(self, user_id: int, price_id: str) -> None:
        ...


class UsageService:
    """
    Usage-metering collaborator backed by the usage_periods table.
    """

    def __init__(self, session: AsyncSession, plan_mapper: PlanMapper):
        self.usage_dao = UsagePeriodDAO(session)
        self.plan_mapper = plan_mapper

    def limits_for_price(self, price_id: str) -> UsageLimits:
        """
        Quotas for a Stripe price ID.

        WHY: Goes through the same tier mapping as organization plans, so an
        unknown paid price gets PRO quotas and "" gets FREE quotas.
        """
        return TIER_LIMITS[self.plan_mapper.map_plan(price_id)]

    async def update_user_limits(self, user_id: int, price_id: str) -> None:
        """
        Upsert the current month's limits for a user.

        Args:
            user_id: User whose quotas change
            price_id: Stripe price ID ("" for no subscription)

        Raises:
            UsageSyncError: If the usage period cannot be written
        """
        limits = self.limits_for_price(price_id)
        period_start, period_end = current_billing_period()

        try:
            await self.usage_dao.upsert_limits(
                user_id=user_id,
                period_start=period_start,
                period_end=period_end,
                limits=limits.to_dict(),
            )
        except SQLAlchemyError as e:
            raise UsageSyncError(
                message=f"Failed to update usage limits: {e}",
                user_id=user_id,
                price_id=price_id,
            ) from e

        logger.info(
            f"Updated usage limits for user {user_id}",
            extra={
                "user_id": user_id,
                "price_id": price_id,
                "period_start": period_start.isoformat(),
            },
        )


# ============================================================================
# Synchronizer
# ============================================================================


@dataclass(frozen=True)
class UsageUpdate:
    """A deferred usage-limit sync produced while applying an event."""

    user_id: int
    price_id: str


class UsageLimitSynchronizer:
    """
    Runs usage-limit updates after the billing transaction is committed.

    WHY: Each update gets its own commit. Any failure of the collaborator
    is rolled back and logged at error level; the already committed
    billing state stays and the delivery is still acknowledged.
    """

    def __init__(self, session: AsyncSession, updater: UsageLimitUpdater):
        self.session = session
        self.updater = updater

    async def sync(self, user_id: int, price_id: str) -> bool:
        """
        Propagate a price change to usage metering.

        Returns:
            True if the limits were committed, False if the update failed
        """
        try:
            await self.updater.update_user_limits(user_id, price_id)
            await self.session.commit()
        except (UsageSyncError, SQLAlchemyError) as e:
            await self.session.rollback()
            logger.error(
                f"Failed to sync usage limits for user {user_id}: {e}",
                extra={"user_id": user_id, "price_id": price_id},
            )
            return False
        except Exception:
            # Remote metering collaborators fail with their own exception types
            await self.session.rollback()
            logger.exception(
                f"Unexpected error syncing usage limits for user {user_id}",
                extra={"user_id": user_id, "price_id": price_id},
            )
            return False
        return True

    async def apply(self, update: UsageUpdate) -> bool:
        return await self.sync(update.user_id, update.price_id)
