# app/schemas/vote.py
from __future__ import annotations

from datetime import datetime

from pydantic import Field

from app.schemas.base import CamelModel


class VoteCreate(CamelModel):
    question: str = Field(..., examples=["Approve budget?"])
    options: list[str] = Field(..., examples=[["Oui", "Non", "Abstention"]])


class VoteCast(CamelModel):
    option: str = Field(..., description="One of the vote's declared options.")


class OptionTally(CamelModel):
    option: str
    count: int
    percentage: int


class VoteTally(CamelModel):
    """
    Per-option counts recomputed from the current responses. Every declared
    option is present, including those nobody picked.
    """

    vote_id: int
    total_responses: int
    results: list[OptionTally]


class VoteRead(CamelModel):
    id: int
    agenda_item_id: int
    question: str
    options: list[str]
    is_open: bool
    created_by: int | None = None
    created_at: datetime | None = None
    closed_at: datetime | None = None
    tally: VoteTally | None = None
