"""
Usage period model for metered quotas.

WHY: Usage limits follow the user's subscription tier. Each calendar month
gets one row per user holding the limits in force and the running totals.
"""

from sqlalchemy import Column, Integer, Date, ForeignKey, JSON, UniqueConstraint

from saas_backend.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UsagePeriod(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Usage limits and totals for one user and one billing period.

    Both JSON columns hold objects keyed by usage type
    (api_calls, storage_bytes, compute_ms, file_uploads).
    """

    __tablename__ = "usage_periods"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    usage_limits = Column(JSON, nullable=False, default=dict)
    usage_totals = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("user_id", "period_start", name="uq_usage_period_user_start"),
    )

    def __repr__(self) -> str:
        return f"<UsagePeriod(user_id={self.user_id}, period_start={self.period_start})>"
