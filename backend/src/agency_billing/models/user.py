"""User model mirrored from the hosted session provider."""
from sqlalchemy import Column, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from agency_billing.models.base import Base


class UserRole(enum.Enum):
    """Portal role supplied by the session provider."""

    CLIENT = "CLIENT"
    TALENT = "TALENT"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class User(Base):
    """
    Portal user.

    Only the fields the billing core needs: contact details for invoices and
    the payment processor customer reference.
    """

    __tablename__ = "users"

    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.CLIENT)
    stripe_customer_id = Column(String, nullable=True, unique=True)

    # Relationships
    payment_methods = relationship("PaymentMethod", back_populates="user", cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="user")
    invoices = relationship("Invoice", back_populates="user")
    hours_balances = relationship("HoursBalance", back_populates="user")

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
