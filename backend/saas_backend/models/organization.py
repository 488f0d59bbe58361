"""
Organization model.

WHY: Organizations represent multi-tenant entities in the system. An
organization can be billed on its own Stripe customer, in which case its
plan tier follows the organization's active subscription.
"""

import enum

from sqlalchemy import Column, Integer, String, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from saas_backend.models.base import Base, TimestampMixin, PrimaryKeyMixin


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class OrganizationPlan(str, enum.Enum):
    """
    Plan tier of an organization.

    WHY: The tier gates features and quotas. It is derived from the
    Stripe price of the organization's subscription, never set by users.
    """

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class OrganizationRole(str, enum.Enum):
    """Role of a user within an organization."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MemberStatus(str, enum.Enum):
    """Status of an organization membership."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Organization(Base, PrimaryKeyMixin, TimestampMixin):
    """
    Organization model representing a tenant in the multi-tenant system.

    Billing fields:
    - plan: current tier, derived from the subscription price
    - stripe_customer_id: Stripe customer for organization-level billing
    - stripe_subscription_id: pointer to the current subscription,
      cleared when that subscription is deleted
    """

    __tablename__ = "organizations"

    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    plan = Column(
        Enum(OrganizationPlan, name="organizationplan", values_callable=_enum_values),
        nullable=False,
        default=OrganizationPlan.FREE,
    )

    # Stripe integration
    # WHY: Checked before the user table when resolving a customer, so
    # organization billing takes precedence.
    stripe_customer_id = Column(String(100), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True)

    members = relationship("OrganizationMember", back_populates="organization")
    subscriptions = relationship("Subscription", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug}, plan={self.plan})>"


class OrganizationMember(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A user's membership in an organization.

    WHY: Every subscription row needs a user. For organization billing
    that user is the organization's OWNER member.
    """

    __tablename__ = "organization_members"

    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(
        Enum(OrganizationRole, name="organizationrole", values_callable=_enum_values),
        nullable=False,
        default=OrganizationRole.MEMBER,
    )
    status = Column(
        Enum(MemberStatus, name="memberstatus", values_callable=_enum_values),
        nullable=False,
        default=MemberStatus.ACTIVE,
    )

    organization = relationship("Organization", back_populates="members")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
    )

    def __repr__(self) -> str:
        return (
            f"<OrganizationMember(org_id={self.organization_id}, "
            f"user_id={self.user_id}, role={self.role})>"
        )
