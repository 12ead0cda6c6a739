# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models in the Meeting Session service.
    """
    pass


# Import ORM models so that Base.metadata is aware of them
# This import should stay at the bottom to avoid circular dependencies.
from app.models.company import Company  # noqa: E402,F401
from app.models.user import User  # noqa: E402,F401
from app.models.meeting import Meeting  # noqa: E402,F401
from app.models.agenda_item import AgendaItem  # noqa: E402,F401
from app.models.participant import MeetingParticipant  # noqa: E402,F401
from app.models.vote import Vote, VoteResponse  # noqa: E402,F401
