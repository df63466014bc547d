"""SQLAlchemy ORM models for the billing core."""
# Import all models here to ensure they are registered on the metadata

from agency_billing.models.base import Base
from agency_billing.models.user import User, UserRole
from agency_billing.models.payment_method import PaymentMethod, PaymentMethodType
from agency_billing.models.subscription import (
    BillingInterval,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)
from agency_billing.models.hours_balance import HoursBalance
from agency_billing.models.invoice import Invoice, InvoiceStatus, TransactionType
from agency_billing.models.notification import Notification, NotificationType
from agency_billing.models.time_log import Project, TimeLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "PaymentMethod",
    "PaymentMethodType",
    "Subscription",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "BillingInterval",
    "HoursBalance",
    "Invoice",
    "InvoiceStatus",
    "TransactionType",
    "Notification",
    "NotificationType",
    "Project",
    "TimeLog",
]
