"""
Usage period Data Access Object.

WHY: Usage limits are written whenever a user's subscription tier changes.
The DAO keeps the one-row-per-user-per-month rule in a single place.
"""

from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saas_backend.dao.base import BaseDAO
from saas_backend.models.base import utc_now
from saas_backend.models.usage import UsagePeriod


class UsagePeriodDAO(BaseDAO[UsagePeriod]):
    """
    Data Access Object for UsagePeriod model.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(UsagePeriod, session)

    async def get_for_period(self, user_id: int, period_start: date) -> Optional[UsagePeriod]:
        """
        Get the usage row for a user and period start.

        Returns:
            UsagePeriod if found, None otherwise
        """
        result = await self.session.execute(
            select(UsagePeriod).where(
                UsagePeriod.user_id == user_id,
                UsagePeriod.period_start == period_start,
            )
        )
        return result.scalar_one_or_none()

    async def upsert_limits(
        self,
        user_id: int,
        period_start: date,
        period_end: date,
        limits: Dict[str, Any],
    ) -> UsagePeriod:
        """
        Set the limits for a period, creating the period if needed.

        WHY: Existing totals are kept; only the limits follow the new tier.

        Args:
            user_id: User whose limits change
            period_start: First day of the billing period
            period_end: Last day of the billing period
            limits: Limits keyed by usage type

        Returns:
            The created or updated UsagePeriod
        """
        period = await self.get_for_period(user_id, period_start)
        if period is None:
            return await self.create(
                user_id=user_id,
                period_start=period_start,
                period_end=period_end,
                usage_limits=dict(limits),
                usage_totals={},
            )

        return await self.update_instance(
            period,
            usage_limits=dict(limits),
            updated_at=utc_now(),
        )
