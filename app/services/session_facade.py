# app/services/session_facade.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import (
    DomainError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from app.models.agenda_item import AgendaItem
from app.models.meeting import Meeting
from app.schemas.agenda_item import (
    AgendaEntry,
    AgendaItemCreate,
    AgendaItemRead,
    AgendaRead,
)
from app.schemas.identity import Identity
from app.schemas.meeting import MeetingCreate, MeetingRead, MeetingStatus
from app.schemas.participant import (
    OrganizationAttendance,
    ParticipantRead,
    ParticipantStatus,
    QuorumRead,
)
from app.schemas.vote import VoteRead, VoteTally
from app.services.agenda_sequencer import (
    OVERVIEW_INDEX,
    AgendaOverview,
    AgendaSequencer,
    CurrentItem,
    PresenterSession,
    duration_summary,
    status_changes,
)
from app.services.participant_ledger import ParticipantLedger
from app.services.persistence_gateway import PersistenceGateway
from app.services.realtime import (
    RoomConnection,
    RoomHub,
    agenda_deleted_message,
    agenda_update_message,
    vote_update_message,
)
from app.services.vote_engine import VoteEngine, vote_read

logger = logging.getLogger(__name__)

# Columns a client may change through a partial agenda item update.
AGENDA_ITEM_UPDATABLE = {
    "title",
    "description",
    "content",
    "duration",
    "type",
    "visual_link",
    "order_index",
    "parent_id",
    "status",
}


class SessionFacade:
    """
    Single entry point for a live meeting session.

    Every mutation follows the same order:
    1) check the caller's capability and validate the input,
    2) write through the persistence gateway and commit,
    3) only after a successful commit, push to the meeting room,
    4) return the updated entity or tally.

    Only `DomainError`s leave this class: driver failures are rolled back and
    re-raised as `PersistenceError`, and nothing is broadcast for them.
    """

    def __init__(self, gateway: PersistenceGateway, hub: RoomHub) -> None:
        self.gateway = gateway
        self.hub = hub
        self.agenda = AgendaSequencer(gateway)
        self.ledger = ParticipantLedger(gateway)
        self.votes = VoteEngine(gateway)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _unit_of_work(self, operation: str, commit: bool = True) -> AsyncIterator[None]:
        try:
            yield
            if commit:
                await self.gateway.commit()
        except DomainError:
            await self.gateway.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.gateway.rollback()
            logger.exception("persistence_failure operation=%s", operation)
            raise PersistenceError(f"Storage failure during {operation}.") from exc

    @staticmethod
    def _require(identity: Identity, capability: str) -> None:
        if not identity.permissions.allows(capability):
            raise PermissionDeniedError(f"Missing permission '{capability}'.")

    async def _meeting(self, meeting_id: int) -> Meeting:
        meeting = await self.gateway.get_meeting(meeting_id)
        if meeting is None:
            raise NotFoundError(f"Meeting with id {meeting_id} not found.")
        return meeting

    async def _agenda_item(self, item_id: int) -> AgendaItem:
        item = await self.gateway.get_agenda_item(item_id)
        if item is None:
            raise NotFoundError(f"Agenda item with id {item_id} not found.")
        return item

    # ------------------------------------------------------------------
    # Meetings
    # ------------------------------------------------------------------
    async def create_meeting(self, identity: Identity, payload: MeetingCreate) -> MeetingRead:
        self._require(identity, "canCreateMeetings")
        async with self._unit_of_work("create_meeting"):
            meeting = await self.gateway.create_meeting(
                title=payload.title,
                description=payload.description,
                date=payload.date,
                status=payload.status.value,
                created_by=identity.user_id,
            )
        logger.info("meeting_created meeting_id=%s created_by=%s", meeting.id, identity.user_id)
        return MeetingRead.model_validate(meeting)

    async def list_meetings(self) -> List[MeetingRead]:
        async with self._unit_of_work("list_meetings", commit=False):
            meetings = await self.gateway.list_meetings()
        return [MeetingRead.model_validate(m) for m in meetings]

    async def get_meeting(self, meeting_id: int) -> MeetingRead:
        async with self._unit_of_work("get_meeting", commit=False):
            meeting = await self._meeting(meeting_id)
        return MeetingRead.model_validate(meeting)

    async def update_meeting_status(
        self,
        identity: Identity,
        meeting_id: int,
        status: MeetingStatus,
    ) -> MeetingRead:
        self._require(identity, "canCreateMeetings")
        async with self._unit_of_work("update_meeting_status"):
            meeting = await self._meeting(meeting_id)
            meeting = await self.gateway.update_meeting(meeting, {"status": MeetingStatus(status).value})
        return MeetingRead.model_validate(meeting)

    async def delete_meeting(self, identity: Identity, meeting_id: int) -> None:
        self._require(identity, "canCreateMeetings")
        async with self._unit_of_work("delete_meeting"):
            if not await self.gateway.delete_meeting(meeting_id):
                raise NotFoundError(f"Meeting with id {meeting_id} not found.")
        logger.info("meeting_deleted meeting_id=%s", meeting_id)

    # ------------------------------------------------------------------
    # Agenda: reads and navigation
    # ------------------------------------------------------------------
    async def get_agenda(
        self,
        meeting_id: int,
        session: Optional[PresenterSession] = None,
    ) -> AgendaRead:
        async with self._unit_of_work("get_agenda", commit=False):
            await self._meeting(meeting_id)
            agenda = await self.agenda.load(meeting_id)
        entries = [
            AgendaEntry(
                position=position,
                depth=agenda.depth_of(item),
                item=AgendaItemRead.model_validate(item),
            )
            for position, item in enumerate(agenda)
        ]
        return AgendaRead(
            meeting_id=meeting_id,
            entries=entries,
            durations=duration_summary(agenda, session),
        )

    async def get_agenda_item(self, item_id: int) -> AgendaItemRead:
        async with self._unit_of_work("get_agenda_item", commit=False):
            item = await self._agenda_item(item_id)
        return AgendaItemRead.model_validate(item)

    async def current_item(self, session: PresenterSession) -> CurrentItem:
        async with self._unit_of_work("current_item", commit=False):
            return await self.agenda.current_item(session)

    async def advance(self, session: PresenterSession) -> CurrentItem:
        async with self._unit_of_work("advance", commit=False):
            return await self.agenda.advance(session)

    async def retreat(self, session: PresenterSession) -> CurrentItem:
        async with self._unit_of_work("retreat", commit=False):
            return await self.agenda.retreat(session)

    async def jump_to(self, session: PresenterSession, item_id: int) -> CurrentItem:
        async with self._unit_of_work("jump_to", commit=False):
            return await self.agenda.jump_to(session, item_id)

    async def show_overview(self, session: PresenterSession) -> CurrentItem:
        return await self.agenda.show_overview(session)

    async def set_duration_override(
        self,
        session: PresenterSession,
        item_id: int,
        minutes: Optional[int],
    ) -> None:
        async with self._unit_of_work("set_duration_override", commit=False):
            item = await self._agenda_item(item_id)
        if item.meeting_id != session.meeting_id:
            raise NotFoundError(f"Agenda item {item_id} is not part of meeting {session.meeting_id}.")
        if minutes is None:
            session.duration_overrides.pop(item_id, None)
        elif minutes < 0:
            raise ValidationError("Duration override must not be negative.")
        else:
            session.duration_overrides[item_id] = minutes

    async def presenter_view(self, session: PresenterSession, current: CurrentItem) -> Dict[str, Any]:
        """
        Message describing the presenter position, sent to that presenter only.
        """
        agenda = await self.get_agenda(session.meeting_id, session)
        item_payload = None
        if not isinstance(current, AgendaOverview):
            item_payload = AgendaItemRead.model_validate(current).model_dump(mode="json", by_alias=True)
        return {
            "type": "current_item",
            "meetingId": session.meeting_id,
            "index": session.current_index if item_payload is not None else OVERVIEW_INDEX,
            "agendaItem": item_payload,
            "durations": agenda.durations.model_dump(mode="json", by_alias=True),
        }

    # ------------------------------------------------------------------
    # Agenda: mutations
    # ------------------------------------------------------------------
    async def _validate_parent(
        self,
        meeting_id: int,
        parent_id: Optional[int],
        item_id: Optional[int] = None,
    ) -> None:
        if parent_id is None:
            return
        if item_id is not None and parent_id == item_id:
            raise ValidationError("An agenda item cannot be its own parent.")
        parent = await self.gateway.get_agenda_item(parent_id)
        if parent is None or parent.meeting_id != meeting_id:
            raise ValidationError(f"Parent item {parent_id} does not belong to meeting {meeting_id}.")
        if parent.parent_id is not None:
            raise ValidationError("Agenda items can only be nested one level deep.")
        if item_id is not None and await self.gateway.has_children(item_id):
            raise ValidationError("An item with sub-items cannot become a sub-item.")

    def _broadcast_agenda(self, item: AgendaItemRead, origin: Optional[str]) -> None:
        self.hub.broadcast(
            item.meeting_id,
            agenda_update_message(item),
            exclude_connection_id=origin,
        )

    async def create_agenda_item(
        self,
        identity: Identity,
        meeting_id: int,
        payload: AgendaItemCreate,
        origin: Optional[str] = None,
    ) -> AgendaItemRead:
        self._require(identity, "canManageAgenda")
        async with self._unit_of_work("create_agenda_item"):
            await self._meeting(meeting_id)
            await self._validate_parent(meeting_id, payload.parent_id)

            order_index = payload.order_index
            if order_index is None:
                order_index = await self.gateway.next_order_index(meeting_id)
            elif await self.gateway.order_index_taken(meeting_id, order_index):
                raise ValidationError(f"Order index {order_index} is already used in meeting {meeting_id}.")

            item = await self.gateway.create_agenda_item(
                meeting_id=meeting_id,
                parent_id=payload.parent_id,
                title=payload.title,
                description=payload.description,
                content=payload.content,
                duration=payload.duration,
                type=payload.type.value,
                visual_link=payload.visual_link,
                order_index=order_index,
            )
            result = AgendaItemRead.model_validate(item)

        self._broadcast_agenda(result, origin)
        return result

    async def update_agenda_item(
        self,
        identity: Identity,
        item_id: int,
        changes: Dict[str, Any],
        origin: Optional[str] = None,
        capability: str = "canManageAgenda",
    ) -> AgendaItemRead:
        self._require(identity, capability)
        unknown = set(changes) - AGENDA_ITEM_UPDATABLE
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}.")

        async with self._unit_of_work("update_agenda_item"):
            item = await self._agenda_item(item_id)
            if "parent_id" in changes:
                await self._validate_parent(item.meeting_id, changes["parent_id"], item_id=item.id)
            if "order_index" in changes:
                if changes["order_index"] is None:
                    raise ValidationError("Order index cannot be cleared.")
                if await self.gateway.order_index_taken(item.meeting_id, changes["order_index"], exclude_item_id=item.id):
                    raise ValidationError(
                        f"Order index {changes['order_index']} is already used in meeting {item.meeting_id}."
                    )
            for key in ("title", "duration", "type", "status"):
                if key in changes and changes[key] is None:
                    raise ValidationError(f"Field '{key}' cannot be cleared.")

            normalized = {
                key: (value.value if hasattr(value, "value") else value)
                for key, value in changes.items()
            }
            if "status" in normalized:
                try:
                    normalized.update(status_changes(item, normalized["status"]))
                except ValueError:
                    raise ValidationError(f"Unknown agenda item status '{normalized['status']}'.") from None
            item = await self.gateway.update_agenda_item(item, normalized)
            result = AgendaItemRead.model_validate(item)

        self._broadcast_agenda(result, origin)
        return result

    async def update_agenda_content(
        self,
        identity: Identity,
        item_id: int,
        content: str,
        origin: Optional[str] = None,
    ) -> AgendaItemRead:
        return await self.update_agenda_item(
            identity,
            item_id,
            {"content": content},
            origin=origin,
            capability="canEdit",
        )

    async def mark_complete(
        self,
        identity: Identity,
        item_id: int,
        completed: bool,
        origin: Optional[str] = None,
    ) -> AgendaItemRead:
        self._require(identity, "canManageAgenda")
        async with self._unit_of_work("mark_complete"):
            item = await self.agenda.mark_complete(item_id, completed)
            result = AgendaItemRead.model_validate(item)
        self._broadcast_agenda(result, origin)
        return result

    async def delete_agenda_item(
        self,
        identity: Identity,
        item_id: int,
        origin: Optional[str] = None,
    ) -> None:
        self._require(identity, "canManageAgenda")
        async with self._unit_of_work("delete_agenda_item"):
            item = await self._agenda_item(item_id)
            meeting_id = item.meeting_id
            await self.gateway.delete_agenda_item(item_id)
        self.hub.broadcast(
            meeting_id,
            agenda_deleted_message(item_id, meeting_id),
            exclude_connection_id=origin,
        )

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------
    async def list_participants(self, meeting_id: int) -> List[ParticipantRead]:
        async with self._unit_of_work("list_participants", commit=False):
            return await self.ledger.list_participants(meeting_id)

    async def add_participant(
        self,
        identity: Identity,
        meeting_id: int,
        user_id: int,
        status: ParticipantStatus = ParticipantStatus.INVITED,
        proxy_company_id: Optional[int] = None,
    ) -> bool:
        self._require(identity, "canManageParticipants")
        async with self._unit_of_work("add_participant"):
            return await self.ledger.add_participant(
                meeting_id,
                user_id,
                status=ParticipantStatus(status),
                proxy_company_id=proxy_company_id,
                actor_id=identity.user_id,
            )

    async def set_participant_status(
        self,
        identity: Identity,
        meeting_id: int,
        user_id: int,
        status: ParticipantStatus,
        proxy_company_id: Optional[int] = None,
    ) -> ParticipantRead:
        self._require(identity, "canManageParticipants")
        async with self._unit_of_work("set_participant_status"):
            await self._meeting(meeting_id)
            return await self.ledger.set_status(
                meeting_id,
                user_id,
                ParticipantStatus(status),
                proxy_company_id,
                actor_id=identity.user_id,
            )

    async def remove_participant(self, identity: Identity, meeting_id: int, user_id: int) -> int:
        self._require(identity, "canManageParticipants")
        async with self._unit_of_work("remove_participant"):
            await self._meeting(meeting_id)
            return await self.ledger.remove_participant(meeting_id, user_id, actor_id=identity.user_id)

    async def organization_attendance(self, meeting_id: int) -> List[OrganizationAttendance]:
        async with self._unit_of_work("organization_attendance", commit=False):
            return await self.ledger.aggregate_by_organization(meeting_id)

    async def quorum(self, meeting_id: int) -> QuorumRead:
        async with self._unit_of_work("quorum", commit=False):
            return await self.ledger.compute_quorum(meeting_id)

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------
    async def create_vote(
        self,
        identity: Identity,
        agenda_item_id: int,
        question: str,
        options: List[str],
    ) -> VoteRead:
        self._require(identity, "canVote")
        async with self._unit_of_work("create_vote"):
            vote = await self.votes.create_vote(agenda_item_id, question, options, created_by=identity.user_id)
            tally = await self.votes.tally(vote.id)
        return vote_read(vote, tally)

    async def list_votes(self, agenda_item_id: int) -> List[VoteRead]:
        async with self._unit_of_work("list_votes", commit=False):
            return await self.votes.list_votes(agenda_item_id)

    async def vote_results(self, identity: Identity, vote_id: int) -> VoteTally:
        self._require(identity, "canSeeVoteResults")
        async with self._unit_of_work("vote_results", commit=False):
            return await self.votes.tally(vote_id)

    async def _committed_tally(self, operation: str, vote_id: int) -> VoteTally:
        # Read in a transaction begun after the commit, so ballots committed
        # concurrently by other sessions are counted.
        async with self._unit_of_work(operation, commit=False):
            return await self.votes.tally(vote_id)

    async def cast_vote(self, identity: Identity, vote_id: int, option: str) -> VoteTally:
        self._require(identity, "canVote")
        async with self._unit_of_work("cast_vote"):
            await self.votes.cast_vote(vote_id, identity.user_id, option)
            meeting_id = await self.gateway.meeting_id_for_vote(vote_id)
        tally = await self._committed_tally("cast_vote", vote_id)
        if meeting_id is not None:
            self.hub.broadcast(meeting_id, vote_update_message(tally, is_open=True))
        return tally

    async def close_vote(self, identity: Identity, vote_id: int) -> VoteRead:
        self._require(identity, "canVote")
        async with self._unit_of_work("close_vote"):
            was_open = (await self.votes.require_vote(vote_id)).is_open
            vote = await self.votes.close_vote(vote_id)
            meeting_id = await self.gateway.meeting_id_for_vote(vote_id)
        tally = await self._committed_tally("close_vote", vote_id)
        if was_open and meeting_id is not None:
            self.hub.broadcast(meeting_id, vote_update_message(tally, is_open=False))
        return vote_read(vote, tally)

    async def delete_vote(self, identity: Identity, vote_id: int) -> None:
        self._require(identity, "canVote")
        async with self._unit_of_work("delete_vote"):
            await self.votes.delete_vote(vote_id)

    # ------------------------------------------------------------------
    # Realtime room handling
    # ------------------------------------------------------------------
    async def join_room(
        self,
        identity: Identity,
        connection: RoomConnection,
        meeting_id: int,
        require_access: bool = True,
    ) -> None:
        async with self._unit_of_work("join_room", commit=False):
            meeting = await self._meeting(meeting_id)
            if require_access and not identity.permissions.allows("canManageAgenda"):
                is_creator = meeting.created_by == identity.user_id
                is_participant = await self.gateway.get_participant(meeting_id, identity.user_id) is not None
                if not (is_creator or is_participant):
                    raise PermissionDeniedError(f"No access to meeting {meeting_id}.")
        self.hub.join(connection, meeting_id)

    def require_joined(self, connection: RoomConnection, meeting_id: int) -> None:
        if connection.meeting_id != meeting_id:
            raise ValidationError(f"Join meeting {meeting_id} before sending to it.")

    async def announce_vote_cast(self, connection: RoomConnection, vote_id: int, meeting_id: int) -> VoteTally:
        """
        Re-broadcast a vote's current tally to the whole room, sender included.
        """
        self.require_joined(connection, meeting_id)
        async with self._unit_of_work("announce_vote_cast", commit=False):
            if await self.gateway.meeting_id_for_vote(vote_id) != meeting_id:
                raise NotFoundError(f"Vote {vote_id} is not part of meeting {meeting_id}.")
            vote = await self.votes.require_vote(vote_id)
            tally = await self.votes.tally(vote_id)
        self.hub.broadcast(meeting_id, vote_update_message(tally, is_open=bool(vote.is_open)))
        return tally

    async def announce_agenda_update(
        self,
        connection: RoomConnection,
        meeting_id: int,
        agenda_item: Dict[str, Any],
    ) -> None:
        """
        Relay the stored state of an agenda item to the room, sender excluded.
        """
        self.require_joined(connection, meeting_id)
        item_id = agenda_item.get("id")
        if not isinstance(item_id, int):
            raise ValidationError("agendaItem.id must be an integer.")
        async with self._unit_of_work("announce_agenda_update", commit=False):
            item = await self.gateway.get_agenda_item(item_id)
        if item is None:
            # Deleted by the sender; propagate the removal.
            self.hub.broadcast(
                meeting_id,
                agenda_deleted_message(item_id, meeting_id),
                exclude_connection_id=connection.id,
            )
            return
        if item.meeting_id != meeting_id:
            raise NotFoundError(f"Agenda item {item_id} is not part of meeting {meeting_id}.")
        self._broadcast_agenda(AgendaItemRead.model_validate(item), connection.id)
