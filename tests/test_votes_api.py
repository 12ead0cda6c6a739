# tests/test_votes_api.py
from http import HTTPStatus


def _auth(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


def _agenda_item(client, user_id: int) -> int:
    meeting = client.post(
        "/meetings",
        json={"title": "Conseil", "date": "2025-03-14T18:00:00Z"},
        headers=_auth(user_id),
    ).json()
    item = client.post(
        f"/meetings/{meeting['id']}/agenda",
        json={"title": "Budget 2025", "type": "decision"},
        headers=_auth(user_id),
    )
    assert item.status_code == HTTPStatus.CREATED
    return item.json()["id"]


def _open_vote(client, user_id: int, item_id: int) -> dict:
    resp = client.post(
        f"/agenda-items/{item_id}/votes",
        json={"question": "Approve budget?", "options": ["Oui", "Non", "Abstention"]},
        headers=_auth(user_id),
    )
    assert resp.status_code == HTTPStatus.CREATED, resp.text
    return resp.json()


def test_vote_flow_matches_expected_tally(client, make_user):
    user_a = make_user("Anne", "A")
    user_b = make_user("Bruno", "B")
    item_id = _agenda_item(client, user_a)
    vote = _open_vote(client, user_a, item_id)
    assert vote["isOpen"] is True
    assert vote["createdBy"] == user_a
    assert vote["tally"]["totalResponses"] == 0

    client.post(f"/votes/{vote['id']}/cast", json={"option": "Oui"}, headers=_auth(user_a))
    client.post(f"/votes/{vote['id']}/cast", json={"option": "Non"}, headers=_auth(user_b))
    resp = client.post(f"/votes/{vote['id']}/cast", json={"option": "Abstention"}, headers=_auth(user_a))

    assert resp.status_code == HTTPStatus.OK
    assert resp.json() == {
        "voteId": vote["id"],
        "totalResponses": 2,
        "results": [
            {"option": "Oui", "count": 0, "percentage": 0},
            {"option": "Non", "count": 1, "percentage": 50},
            {"option": "Abstention", "count": 1, "percentage": 50},
        ],
    }

    results = client.get(f"/votes/{vote['id']}/results", headers=_auth(user_b))
    assert results.json() == resp.json()

    listed = client.get(f"/agenda-items/{item_id}/votes", headers=_auth(user_a)).json()
    assert [v["tally"]["totalResponses"] for v in listed] == [2]


def test_invalid_votes_and_ballots(client, make_user):
    user = make_user()
    item_id = _agenda_item(client, user)

    too_few = client.post(
        f"/agenda-items/{item_id}/votes",
        json={"question": "Approve budget?", "options": ["Oui"]},
        headers=_auth(user),
    )
    assert too_few.status_code == HTTPStatus.BAD_REQUEST
    assert too_few.json()["kind"] == "validation_error"

    vote = _open_vote(client, user, item_id)
    wrong = client.post(f"/votes/{vote['id']}/cast", json={"option": "Peut-être"}, headers=_auth(user))
    assert wrong.status_code == HTTPStatus.BAD_REQUEST
    assert wrong.json()["kind"] == "invalid_option"

    assert client.post("/votes/999/cast", json={"option": "Oui"}, headers=_auth(user)).status_code == HTTPStatus.NOT_FOUND


def test_closed_vote_rejects_ballots_and_close_is_idempotent(client, make_user):
    user = make_user()
    item_id = _agenda_item(client, user)
    vote = _open_vote(client, user, item_id)
    client.post(f"/votes/{vote['id']}/cast", json={"option": "Oui"}, headers=_auth(user))

    first = client.post(f"/votes/{vote['id']}/close", headers=_auth(user))
    second = client.post(f"/votes/{vote['id']}/close", headers=_auth(user))

    assert first.status_code == second.status_code == HTTPStatus.OK
    assert first.json()["isOpen"] is False
    assert second.json()["closedAt"] == first.json()["closedAt"]

    late = client.post(f"/votes/{vote['id']}/cast", json={"option": "Non"}, headers=_auth(user))
    assert late.status_code == HTTPStatus.CONFLICT
    assert late.json()["kind"] == "vote_closed"

    results = client.get(f"/votes/{vote['id']}/results", headers=_auth(user)).json()
    assert results["totalResponses"] == 1


def test_results_require_capability_and_delete_removes_vote(client, make_user):
    owner = make_user()
    voter = make_user("Vera", "Voter", permissions={"canView": True, "canVote": True})
    item_id = _agenda_item(client, owner)
    vote = _open_vote(client, owner, item_id)

    assert client.get(f"/votes/{vote['id']}/results", headers=_auth(voter)).status_code == HTTPStatus.FORBIDDEN

    assert client.delete(f"/votes/{vote['id']}", headers=_auth(owner)).status_code == HTTPStatus.NO_CONTENT
    assert client.get(f"/votes/{vote['id']}/results", headers=_auth(owner)).status_code == HTTPStatus.NOT_FOUND
