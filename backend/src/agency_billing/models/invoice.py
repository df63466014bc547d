"""Invoice model for subscription renewals and one-off purchases."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from agency_billing.models.base import Base


class InvoiceStatus(enum.Enum):
    """Invoice payment status."""

    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class TransactionType(enum.Enum):
    """What the invoice bills for."""

    SUBSCRIPTION_RENEWAL = "SUBSCRIPTION_RENEWAL"
    ADDITIONAL_HOURS = "ADDITIONAL_HOURS"
    ONE_TIME_PURCHASE = "ONE_TIME_PURCHASE"
    REFUND = "REFUND"
    CREDIT_ADJUSTMENT = "CREDIT_ADJUSTMENT"


class Invoice(Base):
    """
    Billing document.

    Number and amounts are fixed at creation; afterwards only the status
    fields move. PAID is terminal.
    """

    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_user_status", "user_id", "status"),)

    invoice_number = Column(String, nullable=False, unique=True, index=True)  # INV-1718000000000-001
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True, index=True)
    transaction_type = Column(SQLEnum(TransactionType), nullable=False)
    description = Column(String, nullable=True)
    subtotal = Column(Integer, nullable=False)  # Minor units
    tax = Column(Integer, nullable=False, default=0)  # Minor units
    total = Column(Integer, nullable=False)  # Minor units
    hours_purchased = Column(Integer, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.UNPAID, index=True)
    invoice_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    payment_method_id = Column(Uuid(as_uuid=True), ForeignKey("payment_methods.id", ondelete="SET NULL"), nullable=True)
    external_payment_reference_id = Column(String, nullable=True, index=True)  # Stripe PaymentIntent ID

    # Relationships
    user = relationship("User", back_populates="invoices")
    subscription = relationship("Subscription", back_populates="invoices")
    payment_method = relationship("PaymentMethod", back_populates="invoices")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Invoice(id={self.id}, number={self.invoice_number}, status={self.status.value}, total={self.total})>"
