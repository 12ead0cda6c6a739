# app/models/meeting.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.core.clock import utcnow
from app.db.base import Base


class Meeting(Base):
    """
    A scheduled meeting. Owns its agenda items and participants; deleting it
    cascades to both (and, through agenda items, to votes and responses).
    """

    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        String(50),
        nullable=False,
        default="draft",
    )

    created_by = Column(
        Integer,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Meeting id={self.id} title={self.title!r} status={self.status}>"
