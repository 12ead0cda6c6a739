# app/services/persistence_gateway.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import DateTime, Integer, String, delete, func, literal, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.clock import utcnow
from app.models.agenda_item import AgendaItem
from app.models.company import Company
from app.models.meeting import Meeting
from app.models.participant import MeetingParticipant
from app.models.user import User
from app.models.vote import Vote, VoteResponse

logger = logging.getLogger(__name__)


@dataclass
class ParticipantRow:
    """
    One ledger row joined with the records needed to display and aggregate it.
    """

    participant: MeetingParticipant
    user: User
    company: Optional[Company]
    proxy_company: Optional[Company]


class PersistenceGateway:
    """
    Typed access to meetings, agenda items, participants, votes and responses.

    The gateway never commits on its own: callers group several calls into one
    unit of work and decide when to `commit()` or `rollback()`. Driver errors
    (`SQLAlchemyError`) are left to propagate so the caller can roll back.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    def _insert(self, model):
        """
        Dialect-specific INSERT supporting ON CONFLICT clauses.
        """
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise NotImplementedError(f"Upserts are not supported for dialect '{dialect}'")

    # ------------------------------------------------------------------
    # Users / companies (read-only collaborators)
    # ------------------------------------------------------------------
    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_company(self, company_id: int) -> Optional[Company]:
        return await self.db.get(Company, company_id)

    # ------------------------------------------------------------------
    # Meetings
    # ------------------------------------------------------------------
    async def get_meeting(self, meeting_id: int) -> Optional[Meeting]:
        return await self.db.get(Meeting, meeting_id)

    async def list_meetings(self) -> List[Meeting]:
        result = await self.db.execute(select(Meeting).order_by(Meeting.date.asc(), Meeting.id.asc()))
        return list(result.scalars().all())

    async def create_meeting(self, **fields: Any) -> Meeting:
        meeting = Meeting(**fields)
        self.db.add(meeting)
        await self.db.flush()
        await self.db.refresh(meeting)
        return meeting

    async def update_meeting(self, meeting: Meeting, changes: Dict[str, Any]) -> Meeting:
        for field, value in changes.items():
            setattr(meeting, field, value)
        await self.db.flush()
        await self.db.refresh(meeting)
        return meeting

    async def delete_meeting(self, meeting_id: int) -> bool:
        result = await self.db.execute(delete(Meeting).where(Meeting.id == meeting_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Agenda items
    # ------------------------------------------------------------------
    async def list_agenda_items(self, meeting_id: int) -> List[AgendaItem]:
        stmt = (
            select(AgendaItem)
            .where(AgendaItem.meeting_id == meeting_id)
            .order_by(AgendaItem.order_index.asc(), AgendaItem.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_agenda_item(self, item_id: int) -> Optional[AgendaItem]:
        return await self.db.get(AgendaItem, item_id)

    async def next_order_index(self, meeting_id: int) -> int:
        stmt = select(func.max(AgendaItem.order_index)).where(AgendaItem.meeting_id == meeting_id)
        current = (await self.db.execute(stmt)).scalar_one_or_none()
        return 0 if current is None else current + 1

    async def order_index_taken(
        self,
        meeting_id: int,
        order_index: int,
        exclude_item_id: Optional[int] = None,
    ) -> bool:
        stmt = select(AgendaItem.id).where(
            AgendaItem.meeting_id == meeting_id,
            AgendaItem.order_index == order_index,
        )
        if exclude_item_id is not None:
            stmt = stmt.where(AgendaItem.id != exclude_item_id)
        return (await self.db.execute(stmt)).first() is not None

    async def has_children(self, item_id: int) -> bool:
        stmt = select(AgendaItem.id).where(AgendaItem.parent_id == item_id).limit(1)
        return (await self.db.execute(stmt)).first() is not None

    async def create_agenda_item(self, **fields: Any) -> AgendaItem:
        item = AgendaItem(**fields)
        self.db.add(item)
        await self.db.flush()
        await self.db.refresh(item)
        return item

    async def update_agenda_item(self, item: AgendaItem, changes: Dict[str, Any]) -> AgendaItem:
        for field, value in changes.items():
            setattr(item, field, value)
        await self.db.flush()
        await self.db.refresh(item)
        return item

    async def delete_agenda_item(self, item_id: int) -> bool:
        result = await self.db.execute(delete(AgendaItem).where(AgendaItem.id == item_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------
    async def list_participants(self, meeting_id: int) -> List[ParticipantRow]:
        proxy_company = aliased(Company)
        stmt = (
            select(MeetingParticipant, User, Company, proxy_company)
            .join(User, User.id == MeetingParticipant.user_id)
            .outerjoin(Company, Company.id == User.company_id)
            .outerjoin(proxy_company, proxy_company.id == MeetingParticipant.proxy_company_id)
            .where(MeetingParticipant.meeting_id == meeting_id)
            .order_by(User.last_name.asc(), User.id.asc())
        )
        result = await self.db.execute(stmt)
        return [
            ParticipantRow(participant=p, user=u, company=c, proxy_company=pc)
            for p, u, c, pc in result.all()
        ]

    async def get_participant(self, meeting_id: int, user_id: int) -> Optional[MeetingParticipant]:
        return await self.db.get(MeetingParticipant, (meeting_id, user_id))

    async def add_participant(
        self,
        meeting_id: int,
        user_id: int,
        status: str,
        actor_id: Optional[int] = None,
    ) -> bool:
        """
        Insert the ledger row unless (meeting_id, user_id) already exists.

        Returns True when a new row was created.
        """
        now = utcnow()
        stmt = (
            self._insert(MeetingParticipant)
            .values(
                meeting_id=meeting_id,
                user_id=user_id,
                status=status,
                updated_by=actor_id,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["meeting_id", "user_id"])
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def update_participant(
        self,
        participant: MeetingParticipant,
        *,
        status: str,
        proxy_company_id: Optional[int],
        actor_id: Optional[int],
        joined_at: Optional[datetime] = None,
    ) -> MeetingParticipant:
        participant.status = status
        participant.proxy_company_id = proxy_company_id
        participant.updated_by = actor_id
        participant.updated_at = utcnow()
        if joined_at is not None:
            participant.joined_at = joined_at
        await self.db.flush()
        return participant

    async def delete_participant(self, meeting_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            delete(MeetingParticipant).where(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.user_id == user_id,
            )
        )
        return result.rowcount > 0

    async def clear_mandates_to(
        self,
        meeting_id: int,
        company_id: int,
        fallback_status: str,
        actor_id: Optional[int] = None,
    ) -> int:
        """
        Drop every mandate pointing at `company_id` in one statement.

        Affected rows leave status `proxy` for `fallback_status`.
        Returns the number of rows changed.
        """
        stmt = (
            update(MeetingParticipant)
            .where(
                MeetingParticipant.meeting_id == meeting_id,
                MeetingParticipant.proxy_company_id == company_id,
            )
            .values(
                status=fallback_status,
                proxy_company_id=None,
                updated_by=actor_id,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------
    async def create_vote(self, **fields: Any) -> Vote:
        vote = Vote(**fields)
        self.db.add(vote)
        await self.db.flush()
        await self.db.refresh(vote)
        return vote

    async def get_vote(self, vote_id: int) -> Optional[Vote]:
        return await self.db.get(Vote, vote_id, populate_existing=True)

    async def list_votes(self, agenda_item_id: int) -> List[Vote]:
        stmt = (
            select(Vote)
            .where(Vote.agenda_item_id == agenda_item_id)
            .order_by(Vote.created_at.asc(), Vote.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def meeting_id_for_vote(self, vote_id: int) -> Optional[int]:
        stmt = (
            select(AgendaItem.meeting_id)
            .join(Vote, Vote.agenda_item_id == AgendaItem.id)
            .where(Vote.id == vote_id)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def close_vote(self, vote_id: int) -> bool:
        """
        Close an open vote in one conditional UPDATE.

        Returns False when the vote was already closed (or does not exist),
        in which case `closed_at` is left untouched.
        """
        stmt = (
            update(Vote)
            .where(Vote.id == vote_id, Vote.is_open.is_(True))
            .values(is_open=False, closed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def delete_vote(self, vote_id: int) -> bool:
        result = await self.db.execute(delete(Vote).where(Vote.id == vote_id))
        return result.rowcount > 0

    async def upsert_response(self, vote_id: int, user_id: int, option: str) -> bool:
        """
        Record `option` as the user's ballot with a single INSERT .. ON CONFLICT.

        The row is only written while the vote is open: the inserted values
        are selected from `votes` filtered on `is_open`, so a concurrent close
        can never be overtaken by a late ballot. Re-casting updates the
        existing (vote_id, user_id) row instead of adding a second one.

        Returns False when nothing was written because the vote is closed.
        """
        now = utcnow()
        source = select(
            literal(vote_id, Integer),
            literal(user_id, Integer),
            literal(option, String),
            literal(now, DateTime(timezone=True)),
            literal(now, DateTime(timezone=True)),
        ).where(Vote.id == vote_id, Vote.is_open.is_(True))

        stmt = self._insert(VoteResponse).from_select(
            ["vote_id", "user_id", "option", "created_at", "updated_at"],
            source,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["vote_id", "user_id"],
            set_={
                "option": stmt.excluded.option,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        result = await self.db.execute(stmt)
        written = result.rowcount > 0
        logger.debug(
            "upsert_response vote_id=%s user_id=%s option=%r written=%s",
            vote_id,
            user_id,
            option,
            written,
        )
        return written

    async def list_responses(self, vote_id: int) -> List[VoteResponse]:
        stmt = (
            select(VoteResponse)
            .where(VoteResponse.vote_id == vote_id)
            .order_by(VoteResponse.user_id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_responses_by_option(self, vote_id: int) -> Dict[str, int]:
        stmt = (
            select(VoteResponse.option, func.count())
            .where(VoteResponse.vote_id == vote_id)
            .group_by(VoteResponse.option)
        )
        result = await self.db.execute(stmt)
        return {option: int(count) for option, count in result.all()}

    async def count_responses_by_vote(self, vote_ids: Sequence[int]) -> Dict[int, Dict[str, int]]:
        if not vote_ids:
            return {}
        stmt = (
            select(VoteResponse.vote_id, VoteResponse.option, func.count())
            .where(VoteResponse.vote_id.in_(list(vote_ids)))
            .group_by(VoteResponse.vote_id, VoteResponse.option)
        )
        result = await self.db.execute(stmt)
        counts: Dict[int, Dict[str, int]] = {vote_id: {} for vote_id in vote_ids}
        for vote_id, option, count in result.all():
            counts[vote_id][option] = int(count)
        return counts
