# app/services/participant_ledger.py
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from app.core.clock import utcnow
from app.core.errors import InvalidProxyTargetError, NotFoundError, ValidationError
from app.schemas.participant import (
    CompanySummary,
    OrganizationAttendance,
    ParticipantRead,
    ParticipantStatus,
    QuorumRead,
    UserSummary,
)
from app.services.persistence_gateway import ParticipantRow, PersistenceGateway

logger = logging.getLogger(__name__)

# Highest first. An organization takes the best status among its representatives.
STATUS_PRIORITY = (
    ParticipantStatus.PRESENT,
    ParticipantStatus.PROXY,
    ParticipantStatus.EXCUSED,
    ParticipantStatus.ABSENT,
    ParticipantStatus.INVITED,
)
_RANK = {status: rank for rank, status in enumerate(STATUS_PRIORITY)}

# Status given to rows whose mandate target disappeared.
MANDATE_FALLBACK_STATUS = ParticipantStatus.ABSENT

OrgKey = Tuple[str, int]


def _org_key(row: ParticipantRow) -> OrgKey:
    # Users without an organization stand alone.
    if row.user.company_id is not None:
        return ("company", row.user.company_id)
    return ("user", row.user.id)


def aggregate_rows(rows: List[ParticipantRow]) -> List[OrganizationAttendance]:
    """
    Group ledger rows by organization and derive one status per organization
    using present > proxy > excused > absent > invited.

    Pure function over already-loaded rows; recomputed on every call.
    """
    grouped: "OrderedDict[OrgKey, List[ParticipantRow]]" = OrderedDict()
    for row in rows:
        grouped.setdefault(_org_key(row), []).append(row)

    attendance: Dict[OrgKey, OrganizationAttendance] = {}
    for key, members in grouped.items():
        statuses = [ParticipantStatus(m.participant.status) for m in members]
        org_status = min(statuses, key=lambda s: _RANK[s])

        mandate_given_to: Optional[int] = None
        if org_status == ParticipantStatus.PROXY:
            for member in members:
                if member.participant.status == ParticipantStatus.PROXY.value:
                    mandate_given_to = member.participant.proxy_company_id
                    break

        first = members[0]
        attendance[key] = OrganizationAttendance(
            company_id=first.user.company_id,
            company_name=first.company.name if first.company is not None else None,
            status=org_status,
            representatives=[m.user.id for m in members],
            mandate_given_to=mandate_given_to,
        )

    for org in attendance.values():
        if org.mandate_given_to is None:
            continue
        receiver = attendance.get(("company", org.mandate_given_to))
        if receiver is not None and org.company_id is not None:
            receiver.mandates_received.append(org.company_id)

    return list(attendance.values())


def quorum_from(attendance: List[OrganizationAttendance]) -> QuorumRead:
    """
    Count organizations present in person and organizations represented only
    through a mandate whose target is itself present. No threshold is applied.
    """
    present_ids = {
        org.company_id
        for org in attendance
        if org.status == ParticipantStatus.PRESENT and org.company_id is not None
    }
    present_count = sum(1 for org in attendance if org.status == ParticipantStatus.PRESENT)
    by_mandate = sum(
        1
        for org in attendance
        if org.status == ParticipantStatus.PROXY
        and org.mandate_given_to is not None
        and org.mandate_given_to in present_ids
    )
    return QuorumRead(
        present_count=present_count,
        represented_by_mandate_count=by_mandate,
        organizations_total=len(attendance),
    )


def participant_read(row: ParticipantRow) -> ParticipantRead:
    p = row.participant
    return ParticipantRead(
        meeting_id=p.meeting_id,
        user_id=p.user_id,
        status=ParticipantStatus(p.status),
        proxy_company_id=p.proxy_company_id,
        joined_at=p.joined_at,
        updated_by=p.updated_by,
        updated_at=p.updated_at,
        user=UserSummary.model_validate(row.user),
        company=CompanySummary.model_validate(row.company) if row.company is not None else None,
        proxy_company=(
            CompanySummary.model_validate(row.proxy_company)
            if row.proxy_company is not None
            else None
        ),
    )


class ParticipantLedger:
    """
    Attendance and mandate bookkeeping for one meeting at a time.

    Invariant: a row in status `proxy` names exactly one company, and at the
    moment the mandate is given that company is present in the same meeting
    and is not the giver's own organization. Mandates are single-hop; nothing
    resolves them transitively.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def _require_meeting(self, meeting_id: int) -> None:
        if await self.gateway.get_meeting(meeting_id) is None:
            raise NotFoundError(f"Meeting with id {meeting_id} not found.")

    async def list_participants(self, meeting_id: int) -> List[ParticipantRead]:
        await self._require_meeting(meeting_id)
        rows = await self.gateway.list_participants(meeting_id)
        return [participant_read(row) for row in rows]

    async def add_participant(
        self,
        meeting_id: int,
        user_id: int,
        status: ParticipantStatus = ParticipantStatus.INVITED,
        proxy_company_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> bool:
        """
        Add a user to the meeting ledger; adding an existing participant is a
        no-op. A non-default `status` is then applied through `set_status`
        with the same validation rules.

        Returns True when a new row was created.
        """
        await self._require_meeting(meeting_id)
        if await self.gateway.get_user(user_id) is None:
            raise NotFoundError(f"User with id {user_id} not found.")

        if status == ParticipantStatus.PROXY:
            # Validate before the insert so a bad mandate leaves no row behind.
            user = await self.gateway.get_user(user_id)
            await self._validate_proxy_target(meeting_id, user.company_id, proxy_company_id)

        created = await self.gateway.add_participant(
            meeting_id,
            user_id,
            ParticipantStatus.INVITED.value,
            actor_id=actor_id,
        )
        logger.info(
            "participant_added meeting_id=%s user_id=%s created=%s",
            meeting_id,
            user_id,
            created,
        )

        if status != ParticipantStatus.INVITED:
            await self.set_status(meeting_id, user_id, status, proxy_company_id, actor_id=actor_id)
        return created

    async def _validate_proxy_target(
        self,
        meeting_id: int,
        giver_company_id: Optional[int],
        proxy_company_id: Optional[int],
    ) -> None:
        if proxy_company_id is None:
            raise InvalidProxyTargetError("A proxy status requires a proxy target organization.")
        if giver_company_id is not None and proxy_company_id == giver_company_id:
            raise InvalidProxyTargetError("An organization cannot give its mandate to itself.")
        if await self.gateway.get_company(proxy_company_id) is None:
            raise InvalidProxyTargetError(f"Proxy target organization {proxy_company_id} does not exist.")

        attendance = aggregate_rows(await self.gateway.list_participants(meeting_id))
        target = next((org for org in attendance if org.company_id == proxy_company_id), None)
        if target is None or target.status != ParticipantStatus.PRESENT:
            raise InvalidProxyTargetError(
                f"Organization {proxy_company_id} is not present in meeting {meeting_id} "
                "and cannot receive a mandate."
            )

    async def set_status(
        self,
        meeting_id: int,
        user_id: int,
        status: ParticipantStatus,
        proxy_company_id: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> ParticipantRead:
        """
        Change one participant's attendance status.

        All checks run before any write. The target's own status is never
        changed; leaving `proxy` clears the stored target.
        """
        status = ParticipantStatus(status)
        participant = await self.gateway.get_participant(meeting_id, user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} is not a participant of meeting {meeting_id}.")

        if status == ParticipantStatus.PROXY:
            user = await self.gateway.get_user(user_id)
            await self._validate_proxy_target(meeting_id, user.company_id, proxy_company_id)
            target = proxy_company_id
        else:
            if proxy_company_id is not None:
                raise ValidationError("A proxy target can only be given together with status 'proxy'.")
            target = None

        joined_at = utcnow() if status == ParticipantStatus.PRESENT and participant.joined_at is None else None
        await self.gateway.update_participant(
            participant,
            status=status.value,
            proxy_company_id=target,
            actor_id=actor_id,
            joined_at=joined_at,
        )
        logger.info(
            "participant_status meeting_id=%s user_id=%s status=%s proxy_company_id=%s",
            meeting_id,
            user_id,
            status.value,
            target,
        )

        rows = await self.gateway.list_participants(meeting_id)
        row = next(r for r in rows if r.user.id == user_id)
        return participant_read(row)

    async def remove_participant(
        self,
        meeting_id: int,
        user_id: int,
        actor_id: Optional[int] = None,
    ) -> int:
        """
        Hard-delete a ledger row.

        When the removed user was the last present representative of their
        organization, every mandate pointing at that organization is cleared
        in the same unit of work. Returns the number of mandates cleared.
        """
        participant = await self.gateway.get_participant(meeting_id, user_id)
        if participant is None:
            raise NotFoundError(f"User {user_id} is not a participant of meeting {meeting_id}.")
        user = await self.gateway.get_user(user_id)

        await self.gateway.delete_participant(meeting_id, user_id)

        cleared = 0
        if user is not None and user.company_id is not None:
            attendance = aggregate_rows(await self.gateway.list_participants(meeting_id))
            still_present = any(
                org.company_id == user.company_id and org.status == ParticipantStatus.PRESENT
                for org in attendance
            )
            if not still_present:
                cleared = await self.gateway.clear_mandates_to(
                    meeting_id,
                    user.company_id,
                    MANDATE_FALLBACK_STATUS.value,
                    actor_id=actor_id,
                )

        logger.info(
            "participant_removed meeting_id=%s user_id=%s mandates_cleared=%s",
            meeting_id,
            user_id,
            cleared,
        )
        return cleared

    async def aggregate_by_organization(self, meeting_id: int) -> List[OrganizationAttendance]:
        await self._require_meeting(meeting_id)
        return aggregate_rows(await self.gateway.list_participants(meeting_id))

    async def compute_quorum(self, meeting_id: int) -> QuorumRead:
        return quorum_from(await self.aggregate_by_organization(meeting_id))
