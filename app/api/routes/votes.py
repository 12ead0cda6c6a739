# app/api/routes/votes.py
from http import HTTPStatus

from fastapi import APIRouter, Depends, Path, Response

from app.api.dependencies.identity import (
    get_current_identity,
    get_session_facade,
    require_permission,
)
from app.schemas.identity import Identity
from app.schemas.vote import VoteCast, VoteCreate, VoteRead, VoteTally
from app.services.session_facade import SessionFacade

router = APIRouter(tags=["Votes"])

_TALLY_EXAMPLE = {
    "voteId": 3,
    "totalResponses": 3,
    "results": [
        {"option": "Oui", "count": 2, "percentage": 67},
        {"option": "Non", "count": 1, "percentage": 33},
        {"option": "Abstention", "count": 0, "percentage": 0},
    ],
}


@router.post(
    "/agenda-items/{item_id}/votes",
    response_model=VoteRead,
    response_model_by_alias=True,
    status_code=HTTPStatus.CREATED,
    summary="Open a vote on an agenda item",
    description=(
        "Create an open vote. The question must not be empty and at least two "
        "distinct, non-blank options are required."
    ),
    responses={
        400: {
            "description": "Invalid question or options.",
            "content": {
                "application/json": {
                    "example": {"kind": "validation_error", "detail": "A vote needs at least 2 options."}
                }
            },
        },
        404: {"description": "Agenda item not found."},
    },
)
async def create_vote(
    payload: VoteCreate,
    item_id: int = Path(..., ge=1, description="Agenda item the vote belongs to."),
    identity: Identity = Depends(require_permission("canVote")),
    facade: SessionFacade = Depends(get_session_facade),
) -> VoteRead:
    return await facade.create_vote(identity, item_id, payload.question, payload.options)


@router.get(
    "/agenda-items/{item_id}/votes",
    response_model=list[VoteRead],
    response_model_by_alias=True,
    summary="List the votes of an agenda item",
    description="Every vote of the item with its current tally.",
)
async def list_votes(
    item_id: int = Path(..., ge=1, description="Numeric ID of the agenda item."),
    identity: Identity = Depends(get_current_identity),
    facade: SessionFacade = Depends(get_session_facade),
) -> list[VoteRead]:
    return await facade.list_votes(item_id)


@router.post(
    "/votes/{vote_id}/cast",
    response_model=VoteTally,
    response_model_by_alias=True,
    summary="Cast or change a ballot",
    description=(
        "Record the caller's choice. Casting again replaces the earlier choice; "
        "a user never holds more than one ballot per vote.\n\n"
        "Every connection joined to the meeting, the caster's included, receives "
        "a `vote_update` message with the new tally."
    ),
    responses={
        200: {
            "description": "Ballot stored; fresh tally returned.",
            "content": {"application/json": {"example": _TALLY_EXAMPLE}},
        },
        400: {
            "description": "The option is not one of the vote's options.",
            "content": {
                "application/json": {
                    "example": {"kind": "invalid_option", "detail": "'Peut-être' is not an option of vote 3."}
                }
            },
        },
        409: {
            "description": "The vote is closed.",
            "content": {
                "application/json": {
                    "example": {"kind": "vote_closed", "detail": "Vote 3 is closed."}
                }
            },
        },
    },
)
async def cast_vote(
    payload: VoteCast,
    vote_id: int = Path(..., ge=1, description="Numeric ID of the vote."),
    identity: Identity = Depends(require_permission("canVote")),
    facade: SessionFacade = Depends(get_session_facade),
) -> VoteTally:
    return await facade.cast_vote(identity, vote_id, payload.option)


@router.post(
    "/votes/{vote_id}/close",
    response_model=VoteRead,
    response_model_by_alias=True,
    summary="Close a vote",
    description=(
        "Stop accepting ballots. Closing an already closed vote returns it "
        "unchanged; the closing time is kept from the first close."
    ),
)
async def close_vote(
    vote_id: int = Path(..., ge=1, description="Numeric ID of the vote."),
    identity: Identity = Depends(require_permission("canVote")),
    facade: SessionFacade = Depends(get_session_facade),
) -> VoteRead:
    return await facade.close_vote(identity, vote_id)


@router.delete(
    "/votes/{vote_id}",
    status_code=HTTPStatus.NO_CONTENT,
    summary="Delete a vote and its ballots",
)
async def delete_vote(
    vote_id: int = Path(..., ge=1, description="Numeric ID of the vote."),
    identity: Identity = Depends(require_permission("canVote")),
    facade: SessionFacade = Depends(get_session_facade),
) -> Response:
    await facade.delete_vote(identity, vote_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.get(
    "/votes/{vote_id}/results",
    response_model=VoteTally,
    response_model_by_alias=True,
    summary="Current results of a vote",
    description=(
        "Counts and integer percentages per declared option, recomputed from "
        "the stored ballots. Percentages are 0 while nobody has voted."
    ),
    responses={
        200: {"content": {"application/json": {"example": _TALLY_EXAMPLE}}},
    },
)
async def vote_results(
    vote_id: int = Path(..., ge=1, description="Numeric ID of the vote."),
    identity: Identity = Depends(require_permission("canSeeVoteResults")),
    facade: SessionFacade = Depends(get_session_facade),
) -> VoteTally:
    return await facade.vote_results(identity, vote_id)
