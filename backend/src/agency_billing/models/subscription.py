"""Subscription model for a user's billing relationship."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum, text
from sqlalchemy.orm import relationship
import enum

from agency_billing.models.base import Base


class SubscriptionPlan(enum.Enum):
    """Catalog plan identifiers."""

    STARTER = "STARTER"
    GROWTH = "GROWTH"
    ENTERPRISE = "ENTERPRISE"
    CUSTOM = "CUSTOM"


class SubscriptionStatus(enum.Enum):
    """Subscription lifecycle status."""

    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    PAUSED = "PAUSED"


class BillingInterval(enum.Enum):
    """Billing interval for subscriptions."""

    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Subscription(Base):
    """
    One billing relationship for one user.

    Never hard-deleted; only status transitions. A partial unique index keeps
    at most one ACTIVE subscription per user.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (
        Index(
            "uq_subscriptions_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan = Column(SQLEnum(SubscriptionPlan), nullable=False)
    status = Column(SQLEnum(SubscriptionStatus), nullable=False, default=SubscriptionStatus.ACTIVE)
    billing_interval = Column(SQLEnum(BillingInterval), nullable=False, default=BillingInterval.MONTHLY)
    price_amount = Column(Integer, nullable=False)  # Amount in minor units
    currency = Column(String(3), nullable=False, default="USD")
    monthly_hours = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=False)
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    next_billing_date = Column(DateTime, nullable=False, index=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="subscriptions")
    invoices = relationship("Invoice", back_populates="subscription")
    hours_balances = relationship("HoursBalance", back_populates="subscription")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan.value}, status={self.status.value})>"
