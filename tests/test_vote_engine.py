# tests/test_vote_engine.py
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from app.core.errors import InvalidOptionError, NotFoundError, ValidationError, VoteClosedError
from app.db.session import AsyncSessionLocal
from app.models.agenda_item import AgendaItem
from app.models.meeting import Meeting
from app.models.vote import VoteResponse
from app.services.persistence_gateway import PersistenceGateway
from app.services.vote_engine import VoteEngine, build_tally, percentage, validate_vote_definition


async def _agenda_item(db, owner_id: int) -> int:
    meeting = Meeting(
        title="Conseil",
        date=datetime(2025, 3, 14, 18, 0, tzinfo=timezone.utc),
        created_by=owner_id,
    )
    db.add(meeting)
    await db.flush()
    item = AgendaItem(meeting_id=meeting.id, title="Budget 2025", order_index=0, type="decision")
    db.add(item)
    await db.commit()
    return item.id


def test_percentage_rounds_half_up_and_handles_zero_total():
    assert percentage(0, 0) == 0
    assert percentage(1, 2) == 50
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(1, 8) == 13
    assert percentage(3, 3) == 100


def test_build_tally_lists_every_declared_option_in_order():
    tally = build_tally(7, ["Oui", "Non", "Abstention"], {"Non": 1})

    assert tally.total_responses == 1
    assert [(r.option, r.count, r.percentage) for r in tally.results] == [
        ("Oui", 0, 0),
        ("Non", 1, 100),
        ("Abstention", 0, 0),
    ]


def test_build_tally_with_no_responses_has_zero_percentages():
    tally = build_tally(7, ["Oui", "Non"], {})

    assert tally.total_responses == 0
    assert all(r.percentage == 0 for r in tally.results)


@pytest.mark.parametrize(
    "question, options",
    [
        ("", ["Oui", "Non"]),
        ("   ", ["Oui", "Non"]),
        ("Approve budget?", ["Oui"]),
        ("Approve budget?", ["Oui", "  "]),
        ("Approve budget?", ["Oui", "Oui"]),
    ],
)
def test_validate_vote_definition_rejects_malformed_votes(question, options):
    with pytest.raises(ValidationError):
        validate_vote_definition(question, options)


def test_validate_vote_definition_strips_labels():
    question, options = validate_vote_definition("  Approve budget? ", [" Oui", "Non "])

    assert question == "Approve budget?"
    assert options == ["Oui", "Non"]


@pytest.mark.asyncio
async def test_recast_replaces_previous_choice(make_user):
    user_a = make_user(first_name="Anne")
    user_b = make_user(first_name="Bruno")

    async with AsyncSessionLocal() as db:
        item_id = await _agenda_item(db, user_a)
        gateway = PersistenceGateway(db)
        engine = VoteEngine(gateway)

        vote = await engine.create_vote(item_id, "Approve budget?", ["Oui", "Non", "Abstention"], created_by=user_a)
        await gateway.commit()

        await engine.cast_vote(vote.id, user_a, "Oui")
        await engine.cast_vote(vote.id, user_b, "Non")
        tally = await engine.cast_vote(vote.id, user_a, "Abstention")
        await gateway.commit()

        assert tally.total_responses == 2
        assert [(r.option, r.count, r.percentage) for r in tally.results] == [
            ("Oui", 0, 0),
            ("Non", 1, 50),
            ("Abstention", 1, 50),
        ]

        rows = await db.execute(
            select(func.count()).select_from(VoteResponse).where(
                VoteResponse.vote_id == vote.id,
                VoteResponse.user_id == user_a,
            )
        )
        assert rows.scalar_one() == 1


@pytest.mark.asyncio
async def test_cast_rejects_unknown_option_and_closed_vote(make_user):
    user = make_user()

    async with AsyncSessionLocal() as db:
        item_id = await _agenda_item(db, user)
        gateway = PersistenceGateway(db)
        engine = VoteEngine(gateway)
        vote = await engine.create_vote(item_id, "Approve budget?", ["Oui", "Non"])
        await gateway.commit()

        with pytest.raises(InvalidOptionError):
            await engine.cast_vote(vote.id, user, "Peut-être")

        await engine.cast_vote(vote.id, user, "Oui")
        await engine.close_vote(vote.id)
        await gateway.commit()

        with pytest.raises(VoteClosedError):
            await engine.cast_vote(vote.id, user, "Non")

        tally = await engine.tally(vote.id)
        assert [(r.option, r.count) for r in tally.results] == [("Oui", 1), ("Non", 0)]


@pytest.mark.asyncio
@pytest.mark.parametrize("option", [" Oui ", "Oui ", "oui", ""])
async def test_cast_requires_exact_option_label(make_user, option):
    user = make_user()

    async with AsyncSessionLocal() as db:
        item_id = await _agenda_item(db, user)
        gateway = PersistenceGateway(db)
        engine = VoteEngine(gateway)
        vote = await engine.create_vote(item_id, "Approve budget?", ["Oui", "Non"])
        await gateway.commit()

        with pytest.raises(InvalidOptionError):
            await engine.cast_vote(vote.id, user, option)

        assert await gateway.count_responses_by_option(vote.id) == {}


@pytest.mark.asyncio
async def test_upsert_refuses_to_write_on_closed_vote(make_user):
    user = make_user()

    async with AsyncSessionLocal() as db:
        item_id = await _agenda_item(db, user)
        gateway = PersistenceGateway(db)
        engine = VoteEngine(gateway)
        vote = await engine.create_vote(item_id, "Approve budget?", ["Oui", "Non"])
        await gateway.close_vote(vote.id)
        await gateway.commit()

        assert await gateway.upsert_response(vote.id, user, "Oui") is False
        assert await gateway.count_responses_by_option(vote.id) == {}


@pytest.mark.asyncio
async def test_close_is_idempotent_and_keeps_first_closed_at(make_user):
    user = make_user()

    async with AsyncSessionLocal() as db:
        item_id = await _agenda_item(db, user)
        gateway = PersistenceGateway(db)
        engine = VoteEngine(gateway)
        vote = await engine.create_vote(item_id, "Approve budget?", ["Oui", "Non"])
        await gateway.commit()

        first = await engine.close_vote(vote.id)
        await gateway.commit()
        first_closed_at = first.closed_at

        second = await engine.close_vote(vote.id)
        await gateway.commit()

        assert second.is_open is False
        assert first_closed_at is not None
        assert second.closed_at == first_closed_at


@pytest.mark.asyncio
async def test_unknown_ids_raise_not_found(make_user):
    user = make_user()

    async with AsyncSessionLocal() as db:
        engine = VoteEngine(PersistenceGateway(db))

        with pytest.raises(NotFoundError):
            await engine.create_vote(9999, "Approve budget?", ["Oui", "Non"])
        with pytest.raises(NotFoundError):
            await engine.cast_vote(9999, user, "Oui")
        with pytest.raises(NotFoundError):
            await engine.close_vote(9999)
