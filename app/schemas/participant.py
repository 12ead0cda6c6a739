# app/schemas/participant.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel


class ParticipantStatus(str, Enum):
    """
    Attendance status of one ledger row.
    """

    INVITED = "invited"
    PRESENT = "present"
    ABSENT = "absent"
    EXCUSED = "excused"
    PROXY = "proxy"


class ParticipantAdd(CamelModel):
    user_id: int = Field(..., description="User to add to the meeting.")
    status: ParticipantStatus = Field(ParticipantStatus.INVITED)
    proxy_company_id: int | None = Field(
        None,
        description="Company receiving the mandate; required when status is 'proxy'.",
    )


class ParticipantStatusUpdate(CamelModel):
    status: ParticipantStatus
    proxy_company_id: int | None = None


class CompanySummary(CamelModel):
    id: int
    name: str


class UserSummary(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    company_id: int | None = None


class ParticipantRead(CamelModel):
    """
    Ledger row joined with its user, the user's organization and the
    organization holding the mandate (if any).
    """

    meeting_id: int
    user_id: int
    status: ParticipantStatus
    proxy_company_id: int | None = None
    joined_at: datetime | None = None
    updated_by: int | None = None
    updated_at: datetime | None = None
    user: UserSummary | None = None
    company: CompanySummary | None = None
    proxy_company: CompanySummary | None = None


class OrganizationAttendance(CamelModel):
    """
    Organization-level view derived from its representatives' rows.
    """

    company_id: int | None = Field(
        None,
        description="Organization id; null for a user that belongs to no organization.",
    )
    company_name: str | None = None
    status: ParticipantStatus
    representatives: list[int] = Field(default_factory=list, description="User ids.")
    mandate_given_to: int | None = Field(
        None,
        description="Company that received this organization's mandate.",
    )
    mandates_received: list[int] = Field(
        default_factory=list,
        description="Companies that gave their mandate to this organization.",
    )


class QuorumRead(CamelModel):
    present_count: int = Field(..., description="Organizations present in person.")
    represented_by_mandate_count: int = Field(
        ...,
        description="Organizations represented only through a valid mandate.",
    )
    organizations_total: int = Field(..., description="Organizations on the ledger.")
