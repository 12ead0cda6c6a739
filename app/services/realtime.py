# app/services/realtime.py
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

from fastapi import WebSocketDisconnect

from app.schemas.agenda_item import AgendaItemRead
from app.schemas.vote import VoteTally

logger = logging.getLogger(__name__)


class JsonSender(Protocol):
    async def send_json(self, data: Any) -> None: ...


class RoomConnection:
    """
    One client connection as seen by the fan-out channel.

    Outbound messages go through a bounded queue drained by `pump()`, so a
    broadcaster never waits on a slow socket: when the queue is full the
    message is dropped for this connection only.
    """

    def __init__(
        self,
        websocket: JsonSender,
        queue_size: int = 64,
        connection_id: Optional[str] = None,
    ) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.websocket = websocket
        self.outbox: asyncio.Queue[Dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.meeting_id: Optional[int] = None
        self.closed = False

    def offer(self, message: Dict[str, Any]) -> bool:
        """
        Queue a message without blocking. Returns False if it was dropped.
        """
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                "ws_message_dropped connection_id=%s meeting_id=%s type=%s",
                self.id,
                self.meeting_id,
                message.get("type"),
            )
            return False
        return True

    async def pump(self) -> None:
        """
        Deliver queued messages in order until the socket goes away.
        """
        while not self.closed:
            message = await self.outbox.get()
            try:
                await self.websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                # A dead socket is a delivery concern, never the broadcaster's.
                logger.debug("ws_send_failed connection_id=%s error=%s", self.id, exc)
                self.closed = True


class RoomHub:
    """
    Per-meeting broadcast groups ("rooms").

    A connection belongs to at most one room and only after an explicit join.
    Rooms exist only while they have members; nothing here is persisted.
    Broadcasts to one room are queued in call order.
    """

    def __init__(self) -> None:
        self._rooms: Dict[int, Dict[str, RoomConnection]] = {}

    def join(self, connection: RoomConnection, meeting_id: int) -> None:
        if connection.meeting_id is not None and connection.meeting_id != meeting_id:
            self.leave(connection)
        self._rooms.setdefault(meeting_id, {})[connection.id] = connection
        connection.meeting_id = meeting_id
        logger.info("ws_room_joined connection_id=%s meeting_id=%s members=%s", connection.id, meeting_id, len(self._rooms[meeting_id]))

    def leave(self, connection: RoomConnection) -> None:
        meeting_id = connection.meeting_id
        if meeting_id is None:
            return
        room = self._rooms.get(meeting_id)
        if room is not None:
            room.pop(connection.id, None)
            if not room:
                del self._rooms[meeting_id]
        connection.meeting_id = None

    def disconnect(self, connection: RoomConnection) -> None:
        """
        Forget the connection everywhere and stop delivering to it.
        """
        for meeting_id in list(self._rooms):
            room = self._rooms[meeting_id]
            room.pop(connection.id, None)
            if not room:
                del self._rooms[meeting_id]
        connection.meeting_id = None
        connection.closed = True

    def members(self, meeting_id: int) -> List[RoomConnection]:
        return list(self._rooms.get(meeting_id, {}).values())

    def room_ids(self) -> List[int]:
        return list(self._rooms)

    def broadcast(
        self,
        meeting_id: int,
        message: Dict[str, Any],
        exclude_connection_id: Optional[str] = None,
    ) -> int:
        """
        Queue `message` for every open member of the room, optionally skipping
        the originating connection. Returns the number of connections reached.
        """
        delivered = 0
        for connection in self.members(meeting_id):
            if connection.id == exclude_connection_id or connection.closed:
                continue
            if connection.offer(message):
                delivered += 1
        logger.debug(
            "ws_broadcast meeting_id=%s type=%s delivered=%s",
            meeting_id,
            message.get("type"),
            delivered,
        )
        return delivered


def vote_update_message(tally: VoteTally, is_open: bool) -> Dict[str, Any]:
    return {
        "type": "vote_update",
        "voteId": tally.vote_id,
        "isOpen": is_open,
        "totalResponses": tally.total_responses,
        "results": [r.model_dump(mode="json", by_alias=True) for r in tally.results],
    }


def agenda_update_message(item: AgendaItemRead) -> Dict[str, Any]:
    return {
        "type": "agenda_update",
        "agendaItem": item.model_dump(mode="json", by_alias=True),
    }


def agenda_deleted_message(item_id: int, meeting_id: int) -> Dict[str, Any]:
    return {
        "type": "agenda_update",
        "agendaItem": {"id": item_id, "meetingId": meeting_id, "deleted": True},
    }


def error_message(kind: str, detail: str) -> Dict[str, Any]:
    return {"type": "error", "kind": kind, "detail": detail}
