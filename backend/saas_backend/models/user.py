"""
User model.

WHY: Users are individuals who interact with the platform. The role column
drives access control and is partially managed by billing: paying users are
promoted to PREMIUM, while operator-assigned ADMIN and SUPER_ADMIN roles are
never touched by billing state.
"""

import enum
from sqlalchemy import Column, String, Enum
from sqlalchemy.orm import relationship

from saas_backend.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UserRole(str, enum.Enum):
    """
    User role enumeration, ordered from most to least privileged.

    WHY: Enum ensures only valid roles can be assigned, preventing typos
    and making role-based access control (RBAC) more reliable.
    """

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PREMIUM = "premium"
    USER = "user"

    @property
    def is_protected(self) -> bool:
        """Operator-assigned roles that billing must never overwrite."""
        return self in (UserRole.SUPER_ADMIN, UserRole.ADMIN)


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """
    User model representing individuals who use the platform.

    Billing fields:
    - stripe_customer_id: set when the user has individual billing
    """

    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    # WHY: Default USER role ensures least-privilege access (A01)
    role = Column(
        Enum(UserRole, name="userrole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )

    # Stripe integration
    # WHY: Individual billing binds a Stripe customer directly to the user
    stripe_customer_id = Column(String(100), nullable=True, index=True)

    memberships = relationship("OrganizationMember", back_populates="user")
    subscriptions = relationship("Subscription", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
