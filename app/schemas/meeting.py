# app/schemas/meeting.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel


class MeetingStatus(str, Enum):
    """
    Lifecycle status of a meeting. Transitions are driven by callers; the
    service does not advance them on its own.
    """

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MeetingCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255, examples=["Conseil d'administration"])
    description: str | None = Field(None, description="Optional free-text description.")
    date: datetime = Field(..., description="Scheduled date/time of the meeting.")
    status: MeetingStatus = Field(MeetingStatus.DRAFT)


class MeetingStatusUpdate(CamelModel):
    status: MeetingStatus


class MeetingRead(CamelModel):
    """
    Public representation of a meeting.
    """

    id: int
    title: str
    description: str | None = None
    date: datetime
    status: MeetingStatus
    created_by: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
