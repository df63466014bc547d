"""Hours balance model: one ledger row per user per billing period."""
from decimal import Decimal

from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from agency_billing.models.base import Base

HOURS_PRECISION = Decimal("0.0001")


class HoursBalance(Base):
    """
    Hour-denominated allowance versus consumption for one period.

    Counters are additive and never clamped. Totals, remaining hours and usage
    percentage are derived on every read and never stored.
    """

    __tablename__ = "hours_balances"
    __table_args__ = (Index("ix_hours_balances_user_period", "user_id", "period_start", "period_end"),)

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    allocated_hours = Column(Integer, nullable=False, default=0)
    bonus_hours = Column(Integer, nullable=False, default=0)
    extra_purchased_hours = Column(Integer, nullable=False, default=0)
    rollover_hours = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    # Exact counter; hours_used is always minutes_used / 60 rounded once.
    minutes_used = Column(Integer, nullable=False, default=0)
    hours_used = Column(Numeric(12, 4), nullable=False, default=Decimal("0"))

    # Relationships
    user = relationship("User", back_populates="hours_balances")
    subscription = relationship("Subscription", back_populates="hours_balances")

    @property
    def total_available_hours(self) -> Decimal:
        """Allocated + bonus + purchased + rollover."""
        return (
            Decimal(self.allocated_hours or 0)
            + Decimal(self.bonus_hours or 0)
            + Decimal(self.extra_purchased_hours or 0)
            + Decimal(self.rollover_hours or 0)
        )

    @property
    def hours_remaining(self) -> Decimal:
        """Total available minus used; negative when over budget."""
        return self.total_available_hours - Decimal(self.hours_used or 0)

    @property
    def usage_percentage(self) -> Decimal:
        """Used / available * 100, 0 when nothing is available. May exceed 100."""
        total = self.total_available_hours
        if total == 0:
            return Decimal("0")
        return (Decimal(self.hours_used or 0) / total * 100).quantize(Decimal("0.01"))

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<HoursBalance(id={self.id}, user_id={self.user_id}, "
            f"period_start={self.period_start}, hours_used={self.hours_used})>"
        )
