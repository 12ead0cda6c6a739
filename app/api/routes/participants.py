# app/api/routes/participants.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response

from app.api.dependencies.identity import (
    get_current_identity,
    get_session_facade,
    require_permission,
)
from app.schemas.base import Ack
from app.schemas.identity import Identity
from app.schemas.participant import (
    OrganizationAttendance,
    ParticipantAdd,
    ParticipantRead,
    ParticipantStatusUpdate,
    QuorumRead,
)
from app.services.session_facade import SessionFacade

router = APIRouter(prefix="/meetings/{meeting_id}", tags=["Participants"])


@router.get(
    "/participants",
    response_model=list[ParticipantRead],
    response_model_by_alias=True,
    summary="List the participants of a meeting",
    description=(
        "Each ledger row is returned with its user, the user's organization and, "
        "for status `proxy`, the organization holding the mandate."
    ),
)
async def list_participants(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> list[ParticipantRead]:
    return await facade.list_participants(meeting_id)


@router.post(
    "/participants",
    response_model=Ack,
    status_code=HTTPStatus.CREATED,
    summary="Add a participant to a meeting",
    description=(
        "Add a user to the meeting ledger, optionally with an initial status.\n\n"
        "Adding a user that is already a participant changes nothing (200). "
        "An initial `proxy` status needs `proxyCompanyId` naming an organization "
        "that is present in the meeting."
    ),
    responses={
        201: {
            "description": "Participant added.",
            "content": {"application/json": {"example": {"message": "Participant added."}}},
        },
        200: {
            "description": "The user already was a participant.",
            "content": {"application/json": {"example": {"message": "Participant already present."}}},
        },
        400: {
            "description": "Invalid mandate target.",
            "content": {
                "application/json": {
                    "example": {
                        "kind": "invalid_proxy_target",
                        "detail": "Organization 4 is not present in meeting 1 and cannot receive a mandate.",
                    }
                }
            },
        },
    },
)
async def add_participant(
    payload: ParticipantAdd,
    response: Response,
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(require_permission("canManageParticipants")),
    facade: SessionFacade = Depends(get_session_facade),
) -> Ack:
    created = await facade.add_participant(
        identity,
        meeting_id,
        payload.user_id,
        status=payload.status,
        proxy_company_id=payload.proxy_company_id,
    )
    if not created:
        response.status_code = HTTPStatus.OK
        return Ack(message="Participant already present.")
    return Ack(message="Participant added.")


@router.put(
    "/participants/{user_id}/status",
    response_model=ParticipantRead,
    response_model_by_alias=True,
    summary="Set a participant's attendance status",
    description=(
        "Set the status of one participant.\n\n"
        "- `proxy` requires `proxyCompanyId`; the target must be present and "
        "must not be the participant's own organization.\n"
        "- Any other status clears a previously stored mandate.\n"
        "- The target organization's own status is never changed."
    ),
    responses={
        400: {
            "description": "Invalid mandate target or inconsistent payload.",
            "content": {
                "application/json": {
                    "example": {
                        "kind": "invalid_proxy_target",
                        "detail": "An organization cannot give its mandate to itself.",
                    }
                }
            },
        },
        404: {"description": "Meeting or participant not found."},
    },
)
async def set_participant_status(
    payload: ParticipantStatusUpdate,
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    user_id: int = Path(..., ge=1, description="User whose ledger row changes."),
    identity: Identity = Depends(require_permission("canManageParticipants")),
    facade: SessionFacade = Depends(get_session_facade),
) -> ParticipantRead:
    return await facade.set_participant_status(
        identity,
        meeting_id,
        user_id,
        payload.status,
        payload.proxy_company_id,
    )


@router.delete(
    "/participants/{user_id}",
    response_model=Ack,
    summary="Remove a participant from a meeting",
    description=(
        "Delete the ledger row. When the user was the last present "
        "representative of their organization, mandates given to that "
        "organization are withdrawn and their givers fall back to `absent`."
    ),
)
async def remove_participant(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    user_id: int = Path(..., ge=1, description="User to remove."),
    identity: Identity = Depends(require_permission("canManageParticipants")),
    facade: SessionFacade = Depends(get_session_facade),
) -> Ack:
    cleared = await facade.remove_participant(identity, meeting_id, user_id)
    return Ack(message=f"Participant removed; {cleared} mandate(s) withdrawn.")


@router.get(
    "/attendance",
    response_model=list[OrganizationAttendance],
    response_model_by_alias=True,
    summary="Attendance per organization",
    description=(
        "One entry per organization, with the best status among its "
        "representatives (present > proxy > excused > absent > invited) and the "
        "mandates it gave or received."
    ),
)
async def organization_attendance(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> list[OrganizationAttendance]:
    return await facade.organization_attendance(meeting_id)


@router.get(
    "/quorum",
    response_model=QuorumRead,
    response_model_by_alias=True,
    summary="Quorum figures of a meeting",
    description=(
        "Organizations present in person, organizations represented through a "
        "mandate whose holder is present, and organizations on the ledger. "
        "Whether this reaches quorum is decided by the caller."
    ),
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "presentCount": 1,
                        "representedByMandateCount": 1,
                        "organizationsTotal": 3,
                    }
                }
            },
        },
    },
)
async def quorum(
    meeting_id: int = Path(..., ge=1, description="Numeric ID of the meeting."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> QuorumRead:
    return await facade.quorum(meeting_id)
