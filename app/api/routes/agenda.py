# app/api/routes/agenda.py
from http import HTTPStatus
from typing import Optional

from fastapi import APIRouter, Depends, Path, Response

from app.api.dependencies.identity import (
    get_current_identity,
    get_origin_connection,
    get_session_facade,
    require_permission,
)
from app.schemas.agenda_item import (
    AgendaItemCompletion,
    AgendaItemContentUpdate,
    AgendaItemCreate,
    AgendaItemRead,
    AgendaItemUpdate,
    AgendaRead,
)
from app.schemas.identity import Identity
from app.services.session_facade import SessionFacade

router = APIRouter(tags=["Agenda"])

_AGENDA_ITEM_EXAMPLE = {
    "id": 7,
    "meetingId": 1,
    "parentId": None,
    "title": "Budget 2025",
    "description": None,
    "content": None,
    "duration": 20,
    "type": "decision",
    "visualLink": None,
    "orderIndex": 2,
    "status": "pending",
    "startedAt": None,
    "completedAt": None,
}


@router.post(
    "/meetings/{meeting_id}/agenda",
    response_model=AgendaItemRead,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Add an agenda item",
    description=(
        "Append an item to a meeting agenda.\n\n"
        "- `orderIndex` defaults to the next free position in the meeting.\n"
        "- `parentId` turns the item into a sub-item; the parent must be a "
        "top-level item of the same meeting (one level of nesting only).\n\n"
        "Connected viewers of the meeting receive an `agenda_update` message, "
        "except the connection named in `X-Connection-Id`."
    ),
    responses={
        201: {
            "description": "Agenda item created.",
            "content": {"application/json": {"example": _AGENDA_ITEM_EXAMPLE}},
        },
        400: {
            "description": "Invalid parent or order index already used.",
            "content": {
                "application/json": {
                    "example": {
                        "kind": "validation_error",
                        "detail": "Order index 2 is already used in meeting 1.",
                    }
                }
            },
        },
    },
)
async def create_agenda_item(
    payload: AgendaItemCreate,
    meeting_id: int = Path(..., ge=1, description="Meeting receiving the item."),
    identity: Identity = Depends(require_permission("canManageAgenda")),
    origin: Optional[str] = Depends(get_origin_connection),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaItemRead:
    return await facade.create_agenda_item(identity, meeting_id, payload, origin=origin)


@router.get(
    "/meetings/{meeting_id}/agenda",
    response_model=AgendaRead,
    response_model_by_alias=True,
    summary="Get the flattened agenda of a meeting",
    description=(
        "Return the agenda in presentation order: every top-level item "
        "immediately followed by its sub-items, both sorted by `orderIndex`.\n\n"
        "`durations` sums the estimates in minutes. A section with sub-items "
        "counts its sub-items instead of its own estimate."
    ),
    responses={
        200: {
            "description": "Flattened agenda with duration summary.",
            "content": {
                "application/json": {
                    "example": {
                        "meetingId": 1,
                        "entries": [
                            {"position": 0, "depth": 0, "item": _AGENDA_ITEM_EXAMPLE},
                        ],
                        "durations": {
                            "totalMinutes": 20,
                            "completedMinutes": 0,
                            "remainingMinutes": 20,
                        },
                    }
                }
            },
        },
    },
)
async def get_agenda(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaRead:
    return await facade.get_agenda(meeting_id)


@router.get(
    "/agenda-items/{item_id}",
    response_model=AgendaItemRead,
    response_model_by_alias=True,
    summary="Get one agenda item",
)
async def get_agenda_item(
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaItemRead:
    return await facade.get_agenda_item(item_id)


@router.put(
    "/agenda-items/{item_id}",
    response_model=AgendaItemRead,
    response_model_by_alias=True,
    summary="Update an agenda item",
    description=(
        "Partial update: only the fields present in the body are applied. "
        "Moving an item under a parent follows the same nesting rules as creation."
    ),
)
async def update_agenda_item(
    payload: AgendaItemUpdate,
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(require_permission("canManageAgenda")),
    origin: Optional[str] = Depends(get_origin_connection),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaItemRead:
    changes = payload.model_dump(exclude_unset=True)
    return await facade.update_agenda_item(identity, item_id, changes, origin=origin)


@router.put(
    "/agenda-items/{item_id}/content",
    response_model=AgendaItemRead,
    response_model_by_alias=True,
    summary="Replace the content of an agenda item",
    description="Editors (`canEdit`) may change the rich-text body without managing the agenda.",
)
async def update_agenda_item_content(
    payload: AgendaItemContentUpdate,
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(require_permission("canEdit")),
    origin: Optional[str] = Depends(get_origin_connection),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaItemRead:
    return await facade.update_agenda_content(identity, item_id, payload.content, origin=origin)


@router.post(
    "/agenda-items/{item_id}/complete",
    response_model=AgendaItemRead,
    response_model_by_alias=True,
    summary="Complete or reopen an agenda item",
    description=(
        "`{\"completed\": true}` marks the item completed and stamps "
        "`completedAt`; `false` sets it back to `pending` and clears the stamp. "
        "Presenter positions are not moved."
    ),
)
async def complete_agenda_item(
    payload: AgendaItemCompletion,
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(require_permission("canManageAgenda")),
    origin: Optional[str] = Depends(get_origin_connection),
    facade: SessionFacade = Depends(get_session_facade),
) -> AgendaItemRead:
    return await facade.mark_complete(identity, item_id, payload.completed, origin=origin)


@router.delete(
    "/agenda-items/{item_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete an agenda item",
    description="Deletes the item, its sub-items and their votes.",
)
async def delete_agenda_item(
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(require_permission("canManageAgenda")),
    origin: Optional[str] = Depends(get_origin_connection),
    facade: SessionFacade = Depends(get_session_facade),
) -> Response:
    await facade.delete_agenda_item(identity, item_id, origin=origin)
    return Response(status_code=HTTPStatus.NO_CONTENT)
