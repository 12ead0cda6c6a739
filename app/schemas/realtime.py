# app/schemas/realtime.py
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from app.schemas.base import CamelModel


# --------------------------------------------------------------------------
# Client -> server messages
# --------------------------------------------------------------------------

class JoinMeetingMessage(CamelModel):
    type: Literal["join_meeting"]
    meeting_id: int


class VoteCastMessage(CamelModel):
    """
    Sent by a client after it cast a ballot; the server recomputes the tally
    from the store and fans it out to the whole room.
    """

    type: Literal["vote_cast"]
    vote_id: int
    meeting_id: int


class AgendaUpdateMessage(CamelModel):
    """
    Sent by a client after it mutated an agenda item. Only `agendaItem.id` is
    trusted; the broadcast carries the stored state of that item.
    """

    type: Literal["agenda_update"]
    meeting_id: int
    agenda_item: dict[str, Any]


class NavigateMessage(CamelModel):
    type: Literal["navigate"]
    meeting_id: int
    action: Literal["advance", "retreat", "jump", "overview", "current"]
    item_id: int | None = None


class DurationOverrideMessage(CamelModel):
    type: Literal["set_duration_override"]
    meeting_id: int
    item_id: int
    minutes: int | None = Field(
        None,
        ge=0,
        description="Override for this session; null removes the override.",
    )


ClientMessage = Annotated[
    Union[
        JoinMeetingMessage,
        VoteCastMessage,
        AgendaUpdateMessage,
        NavigateMessage,
        DurationOverrideMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)
