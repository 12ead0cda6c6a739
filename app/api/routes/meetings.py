# app/api/routes/meetings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response

from app.api.dependencies.identity import (
    get_current_identity,
    get_session_facade,
    require_permission,
)
from app.schemas.identity import Identity
from app.schemas.meeting import MeetingCreate, MeetingRead, MeetingStatusUpdate
from app.services.session_facade import SessionFacade

router = APIRouter(prefix="/meetings", tags=["Meetings"])


@router.post(
    "",
    response_model=MeetingRead,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Create a meeting",
    description=(
        "Create a new meeting owned by the caller.\n\n"
        "Requires the `canCreateMeetings` capability. The status defaults to "
        "`draft`; agenda items and participants are added afterwards."
    ),
    responses={
        201: {
            "description": "Meeting successfully created.",
            "content": {
                "application/json": {
                    "example": {
                        "id": 1,
                        "title": "Conseil d'administration",
                        "description": None,
                        "date": "2025-03-14T18:00:00Z",
                        "status": "draft",
                        "createdBy": 3,
                    }
                }
            },
        },
        403: {
            "description": "The caller may not create meetings.",
            "content": {
                "application/json": {
                    "example": {"detail": "Missing permission 'canCreateMeetings'."}
                }
            },
        },
    },
)
async def create_meeting(
    payload: MeetingCreate,
    identity: Identity = Depends(require_permission("canCreateMeetings")),
    facade: SessionFacade = Depends(get_session_facade),
) -> MeetingRead:
    return await facade.create_meeting(identity, payload)


@router.get(
    "",
    response_model=list[MeetingRead],
    response_model_by_alias=True,
    summary="List meetings",
    description="Return every meeting ordered by scheduled date.",
)
async def list_meetings(
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> list[MeetingRead]:
    return await facade.list_meetings()


@router.get(
    "/{meeting_id}",
    response_model=MeetingRead,
    response_model_by_alias=True,
    summary="Get a meeting by ID",
    responses={
        404: {
            "description": "No meeting exists with the given ID.",
            "content": {
                "application/json": {
                    "example": {"kind": "not_found", "detail": "Meeting with id 42 not found."}
                }
            },
        },
    },
)
async def get_meeting(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting.", examples=[1]),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> MeetingRead:
    return await facade.get_meeting(meeting_id)


@router.put(
    "/{meeting_id}/status",
    response_model=MeetingRead,
    response_model_by_alias=True,
    summary="Change a meeting's lifecycle status",
    description=(
        "Set the meeting status to one of `draft`, `scheduled`, `in_progress`, "
        "`completed`. Transitions are not restricted; callers drive them."
    ),
)
async def update_meeting_status(
    payload: MeetingStatusUpdate,
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(require_permission("canCreateMeetings")),
    facade: SessionFacade = Depends(get_session_facade),
) -> MeetingRead:
    return await facade.update_meeting_status(identity, meeting_id, payload.status)


@router.delete(
    "/{meeting_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete a meeting",
    description=(
        "Delete a meeting together with its agenda items, participants, votes "
        "and ballots."
    ),
)
async def delete_meeting(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(require_permission("canCreateMeetings")),
    facade: SessionFacade = Depends(get_session_facade),
) -> Response:
    await facade.delete_meeting(identity, meeting_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
