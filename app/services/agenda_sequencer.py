# app/services/agenda_sequencer.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from app.core.clock import utcnow
from app.core.errors import NotFoundError
from app.models.agenda_item import AgendaItem
from app.schemas.agenda_item import AgendaItemStatus, DurationSummary
from app.services.persistence_gateway import PersistenceGateway

logger = logging.getLogger(__name__)

OVERVIEW_INDEX = -1


class AgendaOverview:
    """
    Sentinel for the "whole agenda" position (index -1).

    This is a regular, addressable navigation state, not an error.
    """

    index = OVERVIEW_INDEX

    def __repr__(self) -> str:
        return "<AgendaOverview>"


OVERVIEW = AgendaOverview()


class FlattenedAgenda:
    """
    Ordered, restartable projection of a meeting agenda.

    Each top-level item is immediately followed by its sub-items, both levels
    sorted by `order_index`. Iterating twice yields the same sequence; the
    underlying rows are never modified.

    A sub-item whose parent is not part of the agenda is treated as a
    top-level item so that every row appears exactly once. Only one level of
    nesting is presented: an item is a sub-item only when its parent is
    itself top-level, so deeper or cyclic parent links are walked as
    top-level items too.
    """

    def __init__(self, items: Iterable[AgendaItem]) -> None:
        self._items = list(items)
        known_ids = {item.id for item in self._items}
        root_ids = {
            item.id
            for item in self._items
            if item.parent_id is None or item.parent_id not in known_ids
        }
        self._child_ids = {item.id for item in self._items if item.parent_id in root_ids}

    def __iter__(self) -> Iterator[AgendaItem]:
        return self._walk()

    def __len__(self) -> int:
        return len(self._items)

    def _walk(self) -> Iterator[AgendaItem]:
        ordered = sorted(self._items, key=lambda i: (i.order_index, i.id))

        children: Dict[int, List[AgendaItem]] = {}
        roots: List[AgendaItem] = []
        for item in ordered:
            if item.id in self._child_ids:
                children.setdefault(item.parent_id, []).append(item)
            else:
                roots.append(item)

        for root in roots:
            yield root
            yield from children.get(root.id, [])

    def depth_of(self, item: AgendaItem) -> int:
        return 1 if item.id in self._child_ids else 0

    def at(self, index: int) -> AgendaItem:
        for position, item in enumerate(self):
            if position == index:
                return item
        raise IndexError(index)

    def index_of(self, item_id: int) -> Optional[int]:
        for position, item in enumerate(self):
            if item.id == item_id:
                return position
        return None


def flatten(items: Iterable[AgendaItem]) -> FlattenedAgenda:
    return FlattenedAgenda(items)


def status_changes(item: AgendaItem, status: AgendaItemStatus) -> Dict[str, Any]:
    """
    Columns to write when `item` moves to `status`.

    Completing stamps `completed_at` (kept when the item was already
    completed) and any other status clears it. The first move to
    `in_progress` stamps `started_at`, which is never cleared.
    """
    status = AgendaItemStatus(status)
    changes: Dict[str, Any] = {"status": status.value}
    if status == AgendaItemStatus.COMPLETED:
        if item.status != AgendaItemStatus.COMPLETED.value or item.completed_at is None:
            changes["completed_at"] = utcnow()
    else:
        changes["completed_at"] = None
    if status == AgendaItemStatus.IN_PROGRESS and item.started_at is None:
        changes["started_at"] = utcnow()
    return changes


@dataclass
class PresenterSession:
    """
    Transient per-connection presentation state.

    Holds nothing persisted: the current position in the flattened agenda and
    the duration overrides supplied by this presenter.
    """

    meeting_id: int
    current_index: int = OVERVIEW_INDEX
    duration_overrides: Dict[int, int] = field(default_factory=dict)

    def effective_duration(self, item: AgendaItem) -> int:
        override = self.duration_overrides.get(item.id)
        return override if override is not None else (item.duration or 0)


CurrentItem = Union[AgendaItem, AgendaOverview]


class AgendaSequencer:
    """
    Navigation and completion tracking over a meeting's flattened agenda.

    Navigation never raises for out-of-range moves: the index is clamped to
    [-1, len - 1]. Only `jump_to` with an id that is not in the agenda is
    reported, as a `NotFoundError`.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def load(self, meeting_id: int) -> FlattenedAgenda:
        return flatten(await self.gateway.list_agenda_items(meeting_id))

    @staticmethod
    def _clamp(index: int, length: int) -> int:
        return max(OVERVIEW_INDEX, min(index, length - 1))

    async def current_item(self, session: PresenterSession) -> CurrentItem:
        agenda = await self.load(session.meeting_id)
        # The agenda may have shrunk since the index was set.
        session.current_index = self._clamp(session.current_index, len(agenda))
        if session.current_index == OVERVIEW_INDEX:
            return OVERVIEW
        return agenda.at(session.current_index)

    async def advance(self, session: PresenterSession) -> CurrentItem:
        agenda = await self.load(session.meeting_id)
        session.current_index = self._clamp(session.current_index + 1, len(agenda))
        return OVERVIEW if session.current_index == OVERVIEW_INDEX else agenda.at(session.current_index)

    async def retreat(self, session: PresenterSession) -> CurrentItem:
        agenda = await self.load(session.meeting_id)
        session.current_index = self._clamp(session.current_index - 1, len(agenda))
        return OVERVIEW if session.current_index == OVERVIEW_INDEX else agenda.at(session.current_index)

    async def show_overview(self, session: PresenterSession) -> AgendaOverview:
        session.current_index = OVERVIEW_INDEX
        return OVERVIEW

    async def jump_to(self, session: PresenterSession, item_id: int) -> AgendaItem:
        agenda = await self.load(session.meeting_id)
        position = agenda.index_of(item_id)
        if position is None:
            raise NotFoundError(
                f"Agenda item {item_id} is not part of meeting {session.meeting_id}."
            )
        session.current_index = position
        return agenda.at(position)

    async def mark_complete(self, item_id: int, completed: bool) -> AgendaItem:
        """
        Persist the completion flag of one item. Does not move any session.
        """
        item = await self.gateway.get_agenda_item(item_id)
        if item is None:
            raise NotFoundError(f"Agenda item with id {item_id} not found.")

        target = AgendaItemStatus.COMPLETED if completed else AgendaItemStatus.PENDING
        item = await self.gateway.update_agenda_item(item, status_changes(item, target))
        logger.info("agenda_item_completion item_id=%s completed=%s", item_id, completed)
        return item


def duration_summary(
    agenda: FlattenedAgenda,
    session: Optional[PresenterSession] = None,
) -> DurationSummary:
    """
    Total, completed and remaining minutes of a meeting.

    A section with sub-items contributes the sum of its sub-items' effective
    durations and never its own estimate; a section without sub-items
    contributes its own effective duration. Effective duration is the
    session override when one exists, otherwise the stored duration.
    """
    items = list(agenda)
    parent_ids = {
        item.parent_id
        for item in items
        if item.parent_id is not None and agenda.depth_of(item) == 1
    }

    def effective(item: AgendaItem) -> int:
        if session is not None:
            return session.effective_duration(item)
        return item.duration or 0

    total = 0
    completed = 0
    for item in items:
        if item.id in parent_ids:
            continue
        minutes = effective(item)
        total += minutes
        if item.status == AgendaItemStatus.COMPLETED.value:
            completed += minutes

    return DurationSummary(
        total_minutes=total,
        completed_minutes=completed,
        remaining_minutes=total - completed,
    )
