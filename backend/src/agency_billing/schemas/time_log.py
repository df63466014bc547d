"""Pydantic schemas for TimeLog model."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict


class TimeLogCreate(BaseModel):
    """Schema for logging time against a client project."""

    project_id: UUID
    client_id: UUID
    user_id: UUID = Field(..., description="Talent who did the work")
    duration_minutes: int = Field(..., gt=0, description="Minutes worked")
    start_time: datetime
    task_name: str | None = None
    description: str | None = None


class TimeLog(BaseModel):
    """Schema for returning time log data."""

    id: UUID
    project_id: UUID
    client_id: UUID
    user_id: UUID
    task_name: str | None
    duration_minutes: int
    start_time: datetime
    description: str | None

    model_config = ConfigDict(from_attributes=True)
