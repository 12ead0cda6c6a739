# app/models/company.py
from sqlalchemy import Column, DateTime, Integer, String, Text

from app.core.clock import utcnow
from app.db.base import Base


class Company(Base):
    """
    Organization a user belongs to. Attendance and mandates are reasoned
    about per company, not per user.
    """

    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    siret = Column(String(14), nullable=True, unique=True)
    email = Column(String(255), nullable=True)
    sector = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"
