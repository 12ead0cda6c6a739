# tests/test_meetings_api.py
from http import HTTPStatus


def _auth(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


def _create_meeting(client, user_id: int, title: str = "Conseil d'administration") -> dict:
    resp = client.post(
        "/meetings",
        json={"title": title, "date": "2025-03-14T18:00:00Z"},
        headers=_auth(user_id),
    )
    assert resp.status_code == HTTPStatus.CREATED
    return resp.json()


def test_create_meeting_defaults_to_draft(client, make_user):
    organizer = make_user()

    data = _create_meeting(client, organizer)

    assert data["status"] == "draft"
    assert data["createdBy"] == organizer
    assert isinstance(data["id"], int)


def test_list_and_get_meetings(client, make_user):
    organizer = make_user()
    first = _create_meeting(client, organizer, "Bureau")
    _create_meeting(client, organizer, "Assemblée")

    listed = client.get("/meetings", headers=_auth(organizer))
    assert listed.status_code == HTTPStatus.OK
    assert {m["title"] for m in listed.json()} == {"Bureau", "Assemblée"}

    single = client.get(f"/meetings/{first['id']}", headers=_auth(organizer))
    assert single.status_code == HTTPStatus.OK
    assert single.json()["title"] == "Bureau"


def test_get_unknown_meeting_is_404_with_kind(client, make_user):
    organizer = make_user()

    resp = client.get("/meetings/999", headers=_auth(organizer))

    assert resp.status_code == HTTPStatus.NOT_FOUND
    assert resp.json() == {"kind": "not_found", "detail": "Meeting with id 999 not found."}


def test_update_status_validates_value(client, make_user):
    organizer = make_user()
    meeting = _create_meeting(client, organizer)

    ok = client.put(f"/meetings/{meeting['id']}/status", json={"status": "in_progress"}, headers=_auth(organizer))
    assert ok.status_code == HTTPStatus.OK
    assert ok.json()["status"] == "in_progress"

    bad = client.put(f"/meetings/{meeting['id']}/status", json={"status": "archived"}, headers=_auth(organizer))
    assert bad.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_delete_meeting_cascades_to_agenda(client, make_user):
    organizer = make_user()
    meeting = _create_meeting(client, organizer)
    item = client.post(
        f"/meetings/{meeting['id']}/agenda",
        json={"title": "Ouverture", "duration": 5},
        headers=_auth(organizer),
    ).json()

    resp = client.delete(f"/meetings/{meeting['id']}", headers=_auth(organizer))
    assert resp.status_code == HTTPStatus.NO_CONTENT

    assert client.get(f"/meetings/{meeting['id']}", headers=_auth(organizer)).status_code == HTTPStatus.NOT_FOUND
    assert client.get(f"/agenda-items/{item['id']}", headers=_auth(organizer)).status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/meetings/{meeting['id']}", headers=_auth(organizer)).status_code == HTTPStatus.NOT_FOUND
