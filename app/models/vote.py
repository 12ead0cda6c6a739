# app/models/vote.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)

from app.core.clock import utcnow
from app.db.base import Base


class Vote(Base):
    """
    A poll attached to an agenda item. Starts open; once closed it never
    reopens and its options never change.
    """

    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, index=True)

    agenda_item_id = Column(
        Integer,
        ForeignKey("agenda_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # ordered list of labels
    is_open = Column(Boolean, nullable=False, default=True)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Vote id={self.id} agenda_item_id={self.agenda_item_id} is_open={self.is_open}>"


class VoteResponse(Base):
    """
    A single ballot. The composite primary key guarantees one response per
    (vote, user); re-casting updates the row in place.
    """

    __tablename__ = "vote_responses"

    vote_id = Column(
        Integer,
        ForeignKey("votes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    option = Column(String(100), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<VoteResponse vote_id={self.vote_id} user_id={self.user_id} option={self.option!r}>"
