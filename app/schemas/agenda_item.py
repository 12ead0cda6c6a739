# app/schemas/agenda_item.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel


class AgendaItemType(str, Enum):
    PROCEDURAL = "procedural"
    PRESENTATION = "presentation"
    DISCUSSION = "discussion"
    BREAK = "break"
    OPENING = "opening"
    CLOSING = "closing"
    DECISION = "decision"
    INFORMATION = "information"


class AgendaItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AgendaItemCreate(CamelModel):
    """
    Payload for adding an item to a meeting agenda.

    `order_index` defaults to the next free index in the meeting;
    `parent_id` must point at a top-level item of the same meeting.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    content: str | None = None
    duration: int = Field(0, ge=0, description="Estimated duration in minutes.")
    type: AgendaItemType = AgendaItemType.DISCUSSION
    visual_link: str | None = None
    order_index: int | None = Field(None, ge=0)
    parent_id: int | None = None


class AgendaItemUpdate(CamelModel):
    """
    Partial update; only the fields sent by the client are applied.
    """

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    content: str | None = None
    duration: int | None = Field(None, ge=0)
    type: AgendaItemType | None = None
    visual_link: str | None = None
    order_index: int | None = Field(None, ge=0)
    parent_id: int | None = None
    status: AgendaItemStatus | None = None


class AgendaItemContentUpdate(CamelModel):
    content: str = Field(..., description="Rich-text body of the agenda item.")


class AgendaItemCompletion(CamelModel):
    completed: bool = Field(True, description="True to complete the item, false to reopen it.")


class AgendaItemRead(CamelModel):
    id: int
    meeting_id: int
    parent_id: int | None = None
    title: str
    description: str | None = None
    content: str | None = None
    duration: int
    type: AgendaItemType
    visual_link: str | None = None
    order_index: int
    status: AgendaItemStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None


class DurationSummary(CamelModel):
    """
    Meeting duration in minutes. Sections with sub-items contribute the sum of
    their sub-items instead of their own estimate.
    """

    total_minutes: int
    completed_minutes: int
    remaining_minutes: int


class AgendaEntry(CamelModel):
    position: int = Field(..., description="Index in the flattened agenda sequence.")
    depth: int = Field(..., description="0 for sections, 1 for sub-items.")
    item: AgendaItemRead


class AgendaRead(CamelModel):
    meeting_id: int
    entries: list[AgendaEntry]
    durations: DurationSummary
