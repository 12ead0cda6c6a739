# app/models/user.py
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from app.core.clock import utcnow
from app.db.base import Base


class User(Base):
    """
    Persisted user record. Authentication lives elsewhere; this service only
    reads the identity, its organization and its capability flags.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False, default="council_member")

    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # camelCase capability flags, e.g. {"canVote": true, "canManageAgenda": false}
    permissions = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} company_id={self.company_id}>"
