# tests/test_identity_dependency.py
from http import HTTPStatus

MEETING = {"title": "Bureau", "date": "2025-05-20T18:00:00Z"}


def test_missing_user_header_is_401(client):
    resp = client.get("/meetings")

    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "x-user-id" in resp.json()["detail"].lower()


def test_unknown_user_is_401(client):
    resp = client.get("/meetings", headers={"X-User-Id": "4242"})

    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_missing_capability_is_403(client, make_user):
    viewer = make_user(permissions={"canView": True})

    resp = client.post("/meetings", json=MEETING, headers={"X-User-Id": str(viewer)})

    assert resp.status_code == HTTPStatus.FORBIDDEN
    assert "canCreateMeetings" in resp.json()["detail"]


def test_capability_granted_lets_request_through(client, make_user):
    organizer = make_user(permissions={"canView": True, "canCreateMeetings": True})

    resp = client.post("/meetings", json=MEETING, headers={"X-User-Id": str(organizer)})

    assert resp.status_code == HTTPStatus.CREATED
    assert resp.json()["createdBy"] == organizer


def test_stored_permissions_accept_snake_case_and_ignore_unknown_keys():
    from app.schemas.identity import Permissions

    perms = Permissions.from_stored({"can_vote": True, "canSeeVoteResults": 1, "isAdmin": True})

    assert perms.allows("canVote") is True
    assert perms.allows("can_see_vote_results") is True
    assert perms.allows("canManageAgenda") is False
