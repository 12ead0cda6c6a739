# app/api/websocket/meeting_ws.py
import asyncio
import logging
from contextlib import suppress
from typing import Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError

from app.api.dependencies.identity import resolve_identity
from app.core.config import get_settings
from app.core.errors import DomainError, ValidationError
from app.db.session import AsyncSessionLocal
from app.schemas.identity import Identity
from app.schemas.realtime import (
    AgendaUpdateMessage,
    ClientMessage,
    DurationOverrideMessage,
    JoinMeetingMessage,
    NavigateMessage,
    VoteCastMessage,
    client_message_adapter,
)
from app.services.agenda_sequencer import PresenterSession
from app.services.persistence_gateway import PersistenceGateway
from app.services.realtime import RoomConnection, error_message
from app.services.session_facade import SessionFacade

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


async def _handle_message(
    facade: SessionFacade,
    identity: Identity,
    connection: RoomConnection,
    sessions: Dict[int, PresenterSession],
    message: ClientMessage,
) -> None:
    settings = get_settings()

    if isinstance(message, JoinMeetingMessage):
        await facade.join_room(
            identity,
            connection,
            message.meeting_id,
            require_access=settings.WS_REQUIRE_MEETING_ACCESS,
        )
        connection.offer({"type": "joined", "meetingId": message.meeting_id})
        return

    if isinstance(message, VoteCastMessage):
        await facade.announce_vote_cast(connection, message.vote_id, message.meeting_id)
        return

    if isinstance(message, AgendaUpdateMessage):
        await facade.announce_agenda_update(connection, message.meeting_id, message.agenda_item)
        return

    # Presenter messages below only ever answer the sender.
    facade.require_joined(connection, message.meeting_id)
    session = sessions.setdefault(message.meeting_id, PresenterSession(meeting_id=message.meeting_id))

    if isinstance(message, NavigateMessage):
        if message.action == "advance":
            current = await facade.advance(session)
        elif message.action == "retreat":
            current = await facade.retreat(session)
        elif message.action == "overview":
            current = await facade.show_overview(session)
        elif message.action == "jump":
            if message.item_id is None:
                raise ValidationError("A jump needs an itemId.")
            current = await facade.jump_to(session, message.item_id)
        else:
            current = await facade.current_item(session)
    elif isinstance(message, DurationOverrideMessage):
        await facade.set_duration_override(session, message.item_id, message.minutes)
        current = await facade.current_item(session)
    else:  # pragma: no cover
        raise ValidationError(f"Unsupported message type '{message.type}'.")

    connection.offer(await facade.presenter_view(session, current))


@router.websocket("/ws")
async def meeting_socket(websocket: WebSocket):
    """
    Realtime channel of a meeting session.

    Protocol
    --------
    - connect with `?user_id=<id>`; unknown users are refused (1008)
    - server -> `{"type": "connected", "connectionId": ...}`
    - client -> `join_meeting`, `vote_cast`, `agenda_update`, `navigate`,
      `set_duration_override`
    - failures are answered to the sender only as
      `{"type": "error", "kind": ..., "detail": ...}`
    """
    settings = get_settings()
    hub = websocket.app.state.room_hub

    async with AsyncSessionLocal() as db:
        identity = await resolve_identity(db, _parse_user_id(websocket.query_params.get("user_id")))
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = RoomConnection(websocket, queue_size=settings.WS_SEND_QUEUE_SIZE)
    pump_task = asyncio.create_task(connection.pump())
    connection.offer({"type": "connected", "connectionId": connection.id})
    logger.info("ws_connected connection_id=%s user_id=%s", connection.id, identity.user_id)

    sessions: Dict[int, PresenterSession] = {}
    try:
        while not connection.closed:
            raw = await websocket.receive_text()
            try:
                message = client_message_adapter.validate_json(raw)
            except PydanticValidationError as exc:
                connection.offer(error_message(ValidationError.kind, f"Malformed message: {exc.errors()[0]['msg']}"))
                continue

            async with AsyncSessionLocal() as db:
                facade = SessionFacade(PersistenceGateway(db), hub)
                try:
                    await _handle_message(facade, identity, connection, sessions, message)
                except DomainError as exc:
                    logger.info(
                        "ws_message_rejected connection_id=%s type=%s kind=%s",
                        connection.id,
                        message.type,
                        exc.kind,
                    )
                    connection.offer(error_message(exc.kind, exc.message))
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection)
        pump_task.cancel()
        with suppress(asyncio.CancelledError):
            await pump_task
        logger.info("ws_disconnected connection_id=%s", connection.id)
