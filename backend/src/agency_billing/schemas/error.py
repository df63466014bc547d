"""Structured error response schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from agency_billing.utils.dates import utcnow


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure."""

    error: str = Field(..., description="Error code (e.g. 'invoice_already_paid', 'ValidationError')")
    kind: str | None = Field(default=None, description="Error kind: not_found, invalid_state, external_dependency, unauthorized")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(default=None, description="Field-level details for validation errors")
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=utcnow, description="Error timestamp")


# Remediation hints for common errors
REMEDIATION_HINTS = {
    "invoice_already_paid": "Cannot modify a paid invoice. Issue a credit adjustment instead.",
    "no_payment_method": "Add a payment method before activating a subscription.",
    "no_customer_reference": "Create a payment setup for the client before charging.",
    "payment_requires_authentication": "Ask the client to re-authenticate the card or use a different payment method.",
    "payment_failed": "Retry with a different payment method.",
    "enterprise_requires_custom_price": "Provide custom_price_amount for enterprise plans.",
    "subscription_already_active": "Cancel or update the existing subscription instead.",
    "no_active_balance": "Activate a subscription to open an hours balance.",
}
