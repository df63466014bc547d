"""Payment method model mirroring methods saved with the payment processor."""
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from agency_billing.models.base import Base


class PaymentMethodType(enum.Enum):
    """Kind of saved payment method."""

    CARD = "CARD"
    BANK_ACCOUNT = "BANK_ACCOUNT"


class PaymentMethod(Base):
    """
    Customer payment method (credit card, bank account).

    At most one row per user has ``is_default`` set; every write that sets a
    default unsets the others first.
    """

    __tablename__ = "payment_methods"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(PaymentMethodType), nullable=False, default=PaymentMethodType.CARD)
    gateway_payment_method_id = Column(String, nullable=True, unique=True)  # Stripe PM ID
    card_brand = Column(String, nullable=True)  # VISA, MASTERCARD, AMEX
    card_last4 = Column(String(4), nullable=True)
    card_exp_month = Column(Integer, nullable=True)
    card_exp_year = Column(Integer, nullable=True)
    billing_email = Column(String, nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)

    # Relationships
    user = relationship("User", back_populates="payment_methods")
    invoices = relationship("Invoice", back_populates="payment_method")

    def __repr__(self) -> str:
        """String representation."""
        return f"<PaymentMethod(id={self.id}, type={self.type.value}, last4={self.card_last4}, default={self.is_default})>"
