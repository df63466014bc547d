"""Pydantic schemas for PaymentMethod model."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from agency_billing.models.payment_method import PaymentMethodType


class PaymentMethodCreate(BaseModel):
    """Schema for recording a payment method."""

    type: PaymentMethodType = Field(default=PaymentMethodType.CARD, description="Payment method type")
    gateway_payment_method_id: str | None = Field(default=None, description="Stripe payment method ID")
    card_brand: str | None = Field(default=None, description="Card brand (VISA, MASTERCARD, AMEX)")
    card_last4: str | None = Field(default=None, min_length=4, max_length=4, description="Last four card digits")
    card_exp_month: int | None = Field(default=None, ge=1, le=12, description="Card expiry month")
    card_exp_year: int | None = Field(default=None, description="Card expiry year")
    billing_email: str | None = Field(default=None, description="Billing email from the processor")
    is_default: bool = Field(default=False, description="Make this the default payment method")


class SetupIntentConfirm(BaseModel):
    """Schema for confirming a completed SetupIntent."""

    setup_intent_id: str = Field(..., min_length=1, description="Stripe SetupIntent ID")


class SetupIntent(BaseModel):
    """Client secret the portal hands to Stripe Elements."""

    client_secret: str


class PaymentMethod(BaseModel):
    """Schema for returning payment method data."""

    id: UUID
    user_id: UUID
    type: PaymentMethodType
    card_brand: str | None
    card_last4: str | None
    card_exp_month: int | None
    card_exp_year: int | None
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
