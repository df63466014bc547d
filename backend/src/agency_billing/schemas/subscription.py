"""Pydantic schemas for Subscription model."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from agency_billing.models.subscription import BillingInterval, SubscriptionPlan, SubscriptionStatus


class SubscriptionCreate(BaseModel):
    """Schema for creating a subscription directly (without charging)."""

    user_id: UUID = Field(..., description="User this subscription belongs to")
    plan: SubscriptionPlan = Field(..., description="Catalog plan")
    billing_interval: BillingInterval = Field(default=BillingInterval.MONTHLY, description="Billing interval")
    price_amount: int = Field(..., ge=0, description="Price per interval in minor units")
    monthly_hours: int = Field(default=0, ge=0, description="Hours allocated each month")


class SubscriptionUpdate(BaseModel):
    """
    Patch for an active subscription.

    Only plan, price and hours are mutable after creation; anything else is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    plan: SubscriptionPlan | None = Field(default=None, description="New plan")
    price_amount: int | None = Field(default=None, ge=0, description="New price in minor units")
    monthly_hours: int | None = Field(default=None, ge=0, description="New monthly hour allocation")


class Subscription(BaseModel):
    """Schema for returning subscription data."""

    id: UUID
    user_id: UUID
    plan: SubscriptionPlan
    status: SubscriptionStatus
    billing_interval: BillingInterval
    price_amount: int
    currency: str
    monthly_hours: int
    start_date: datetime
    current_period_start: datetime
    current_period_end: datetime
    next_billing_date: datetime
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
