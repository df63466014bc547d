"""Pydantic schemas for API request/response validation."""

from agency_billing.schemas.activation import ActivationRequest, ActivationResult
from agency_billing.schemas.error import ErrorDetail, ErrorResponse
from agency_billing.schemas.hours_balance import HoursBalance, ProjectUsage, PurchasedHours
from agency_billing.schemas.invoice import (
    BillingSummary,
    Invoice,
    InvoiceDocument,
    InvoiceMarkFailed,
    InvoiceMarkPaid,
)
from agency_billing.schemas.notification import Notification, NotificationCreate, UnreadCount
from agency_billing.schemas.payment_method import (
    PaymentMethod,
    PaymentMethodCreate,
    SetupIntent,
    SetupIntentConfirm,
)
from agency_billing.schemas.subscription import Subscription, SubscriptionCreate, SubscriptionUpdate
from agency_billing.schemas.time_log import TimeLog, TimeLogCreate

__all__ = [
    "ActivationRequest",
    "ActivationResult",
    "BillingSummary",
    "ErrorDetail",
    "ErrorResponse",
    "HoursBalance",
    "Invoice",
    "InvoiceDocument",
    "InvoiceMarkFailed",
    "InvoiceMarkPaid",
    "Notification",
    "NotificationCreate",
    "PaymentMethod",
    "PaymentMethodCreate",
    "ProjectUsage",
    "PurchasedHours",
    "SetupIntent",
    "SetupIntentConfirm",
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "TimeLog",
    "TimeLogCreate",
    "UnreadCount",
]
