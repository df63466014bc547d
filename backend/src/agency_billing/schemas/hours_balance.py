"""Pydantic schemas for hours balances and usage reports."""
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict


class HoursBalance(BaseModel):
    """Schema for returning an hours balance with its derived figures."""

    id: UUID
    user_id: UUID
    subscription_id: UUID | None
    period_start: datetime
    period_end: datetime
    allocated_hours: int
    bonus_hours: int
    extra_purchased_hours: int
    rollover_hours: Decimal
    minutes_used: int
    hours_used: Decimal
    total_available_hours: Decimal
    hours_remaining: Decimal
    usage_percentage: Decimal

    model_config = ConfigDict(from_attributes=True)


class PurchasedHours(BaseModel):
    """Schema for requesting extra hours."""

    hours: int = Field(..., gt=0, description="Number of extra hours to buy")
    payment_method_id: UUID | None = Field(default=None, description="Payment method (defaults to the user's default)")


class ProjectUsage(BaseModel):
    """Logged time for one project inside a date range."""

    project_id: UUID
    project_title: str
    project_number: str
    total_minutes: int
    total_hours: Decimal
