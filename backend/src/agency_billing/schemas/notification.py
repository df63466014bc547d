"""Pydantic schemas for Notification model."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from agency_billing.models.notification import NotificationType


class NotificationCreate(BaseModel):
    """Schema for emitting a notification."""

    user_id: UUID
    type: NotificationType = NotificationType.INFO
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    action_url: str | None = None
    action_label: str | None = None


class Notification(BaseModel):
    """Schema for returning notification data."""

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    action_url: str | None
    action_label: str | None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    """Unread notification counter."""

    unread: int
