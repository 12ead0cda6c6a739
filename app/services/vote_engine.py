# app/services/vote_engine.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from app.core.errors import (
    InvalidOptionError,
    NotFoundError,
    ValidationError,
    VoteClosedError,
)
from app.models.vote import Vote
from app.schemas.vote import OptionTally, VoteRead, VoteTally
from app.services.persistence_gateway import PersistenceGateway

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2


def percentage(count: int, total: int) -> int:
    """
    round(100 * count / total), rounding halves up; 0 when total is 0.

    Integer arithmetic keeps e.g. 1/8 = 12.5% -> 13 exact.
    """
    if total <= 0:
        return 0
    return (200 * count + total) // (2 * total)


def build_tally(vote_id: int, options: Sequence[str], counts: Dict[str, int]) -> VoteTally:
    """
    One entry per declared option, in declaration order, zeros included.

    Stored responses naming an option the vote does not declare are still
    reported (after the declared ones) so no ballot is silently dropped.
    """
    total = sum(counts.values())
    results = [
        OptionTally(option=option, count=counts.get(option, 0), percentage=percentage(counts.get(option, 0), total))
        for option in options
    ]
    for option, count in counts.items():
        if option not in options:
            logger.warning("tally_undeclared_option vote_id=%s option=%r count=%s", vote_id, option, count)
            results.append(OptionTally(option=option, count=count, percentage=percentage(count, total)))
    return VoteTally(vote_id=vote_id, total_responses=total, results=results)


def validate_vote_definition(question: str, options: Sequence[str]) -> tuple[str, List[str]]:
    """
    Normalize and validate a new vote's question and options.

    Raises ValidationError for an empty question, fewer than two options,
    a blank option, or the same option listed twice.
    """
    question = (question or "").strip()
    if not question:
        raise ValidationError("Vote question must not be empty.")

    if options is None or len(options) < MIN_OPTIONS:
        raise ValidationError(f"A vote needs at least {MIN_OPTIONS} options.")

    cleaned: List[str] = []
    for option in options:
        label = (option or "").strip()
        if not label:
            raise ValidationError("Vote options must not be blank.")
        if label in cleaned:
            raise ValidationError(f"Duplicate vote option '{label}'.")
        cleaned.append(label)
    return question, cleaned


class VoteEngine:
    """
    Lifecycle of a vote: `Open --close()--> Closed`, never back.

    Tallies are always recomputed from the stored responses; nothing derived
    is cached between calls.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def require_vote(self, vote_id: int) -> Vote:
        vote = await self.gateway.get_vote(vote_id)
        if vote is None:
            raise NotFoundError(f"Vote with id {vote_id} not found.")
        return vote

    async def create_vote(
        self,
        agenda_item_id: int,
        question: str,
        options: Sequence[str],
        created_by: Optional[int] = None,
    ) -> Vote:
        question, cleaned = validate_vote_definition(question, options)
        if await self.gateway.get_agenda_item(agenda_item_id) is None:
            raise NotFoundError(f"Agenda item with id {agenda_item_id} not found.")

        vote = await self.gateway.create_vote(
            agenda_item_id=agenda_item_id,
            question=question,
            options=cleaned,
            is_open=True,
            created_by=created_by,
        )
        logger.info("vote_created vote_id=%s agenda_item_id=%s options=%s", vote.id, agenda_item_id, len(cleaned))
        return vote

    async def cast_vote(self, vote_id: int, user_id: int, option: str) -> VoteTally:
        """
        Record or replace the user's ballot and return the fresh tally.
        """
        vote = await self.require_vote(vote_id)
        if not vote.is_open:
            raise VoteClosedError(f"Vote {vote_id} is closed.")

        # Labels are matched exactly, whitespace and case included.
        if option not in vote.options:
            raise InvalidOptionError(f"'{option}' is not an option of vote {vote_id}.")

        written = await self.gateway.upsert_response(vote_id, user_id, option)
        if not written:
            # Closed between the read above and the write.
            raise VoteClosedError(f"Vote {vote_id} is closed.")

        logger.info("vote_cast vote_id=%s user_id=%s", vote_id, user_id)
        return await self.tally(vote_id)

    async def close_vote(self, vote_id: int) -> Vote:
        """
        Close the vote. Closing an already-closed vote changes nothing.
        """
        await self.require_vote(vote_id)
        closed_now = await self.gateway.close_vote(vote_id)
        vote = await self.require_vote(vote_id)
        logger.info("vote_closed vote_id=%s changed=%s", vote_id, closed_now)
        return vote

    async def tally(self, vote_id: int) -> VoteTally:
        vote = await self.require_vote(vote_id)
        counts = await self.gateway.count_responses_by_option(vote_id)
        return build_tally(vote.id, vote.options, counts)

    async def list_votes(self, agenda_item_id: int) -> List[VoteRead]:
        if await self.gateway.get_agenda_item(agenda_item_id) is None:
            raise NotFoundError(f"Agenda item with id {agenda_item_id} not found.")
        votes = await self.gateway.list_votes(agenda_item_id)
        counts = await self.gateway.count_responses_by_vote([v.id for v in votes])
        return [
            vote_read(vote, build_tally(vote.id, vote.options, counts.get(vote.id, {})))
            for vote in votes
        ]

    async def delete_vote(self, vote_id: int) -> None:
        await self.require_vote(vote_id)
        await self.gateway.delete_vote(vote_id)
        logger.info("vote_deleted vote_id=%s", vote_id)


def vote_read(vote: Vote, tally: Optional[VoteTally] = None) -> VoteRead:
    return VoteRead(
        id=vote.id,
        agenda_item_id=vote.agenda_item_id,
        question=vote.question,
        options=list(vote.options),
        is_open=bool(vote.is_open),
        created_by=vote.created_by,
        created_at=vote.created_at,
        closed_at=vote.closed_at,
        tally=tally,
    )
