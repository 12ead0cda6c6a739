# app/models/agenda_item.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from app.core.clock import utcnow
from app.db.base import Base


class AgendaItem(Base):
    """
    One row of a meeting agenda: either a top-level section or a sub-item
    nested one level under a section (`parent_id`).
    """

    __tablename__ = "agenda_items"

    id = Column(Integer, primary_key=True, index=True)

    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = Column(
        Integer,
        ForeignKey("agenda_items.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # minutes
    type = Column(String(50), nullable=False, default="discussion")
    visual_link = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False)

    status = Column(String(50), nullable=False, default="pending")
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "meeting_id",
            "order_index",
            name="uq_agenda_items_meeting_order",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AgendaItem id={self.id} meeting_id={self.meeting_id} "
            f"parent_id={self.parent_id} order={self.order_index} status={self.status}>"
        )
