"""Pydantic schemas for the subscription activation flow."""
from uuid import UUID

from pydantic import BaseModel, Field

from agency_billing.models.subscription import SubscriptionPlan


class ActivationRequest(BaseModel):
    """Manager request to charge a client and start paid service."""

    plan: SubscriptionPlan = Field(..., description="Plan to activate")
    custom_price_amount: int | None = Field(
        default=None,
        gt=0,
        description="Negotiated monthly price in minor units (required for ENTERPRISE)",
    )
    idempotency_key: str | None = Field(default=None, description="Processor idempotency key for the charge")


class ActivationResult(BaseModel):
    """Records written by a successful activation."""

    subscription_id: UUID
    invoice_id: UUID
    balance_id: UUID | None = None
    payment_status: str
