# app/models/participant.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.core.clock import utcnow
from app.db.base import Base


class MeetingParticipant(Base):
    """
    Ledger row: one user's attendance in one meeting, keyed by
    (meeting_id, user_id). A row in status `proxy` names the company that
    received the mandate.
    """

    __tablename__ = "meeting_participants"

    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    status = Column(String(32), nullable=False, default="invited")

    proxy_company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
    )

    joined_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return (
            f"<MeetingParticipant meeting_id={self.meeting_id} user_id={self.user_id} "
            f"status={self.status} proxy_company_id={self.proxy_company_id}>"
        )
