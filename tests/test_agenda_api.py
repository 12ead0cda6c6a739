# tests/test_agenda_api.py
from http import HTTPStatus


def _auth(user_id: int) -> dict:
    return {"X-User-Id": str(user_id)}


def _meeting(client, user_id: int) -> int:
    resp = client.post(
        "/meetings",
        json={"title": "Assemblée générale", "date": "2025-06-01T18:00:00Z"},
        headers=_auth(user_id),
    )
    assert resp.status_code == HTTPStatus.CREATED
    return resp.json()["id"]


def _add_item(client, user_id: int, meeting_id: int, **payload) -> dict:
    resp = client.post(f"/meetings/{meeting_id}/agenda", json=payload, headers=_auth(user_id))
    assert resp.status_code == HTTPStatus.CREATED, resp.text
    return resp.json()


def test_agenda_is_flattened_with_duration_summary(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)
    section = _add_item(client, user, meeting_id, title="Finances", duration=25)
    _add_item(client, user, meeting_id, title="Questions diverses", duration=20)
    _add_item(client, user, meeting_id, title="Bilan", duration=8, parentId=section["id"])
    _add_item(client, user, meeting_id, title="Budget", duration=10, parentId=section["id"])

    resp = client.get(f"/meetings/{meeting_id}/agenda", headers=_auth(user))

    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert [e["item"]["title"] for e in data["entries"]] == ["Finances", "Bilan", "Budget", "Questions diverses"]
    assert [e["depth"] for e in data["entries"]] == [0, 1, 1, 0]
    assert [e["position"] for e in data["entries"]] == [0, 1, 2, 3]
    assert data["durations"] == {"totalMinutes": 38, "completedMinutes": 0, "remainingMinutes": 38}


def test_order_index_defaults_to_next_free_and_rejects_duplicates(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)

    first = _add_item(client, user, meeting_id, title="Ouverture")
    second = _add_item(client, user, meeting_id, title="Clôture")
    assert (first["orderIndex"], second["orderIndex"]) == (0, 1)

    dup = client.post(
        f"/meetings/{meeting_id}/agenda",
        json={"title": "Doublon", "orderIndex": 1},
        headers=_auth(user),
    )
    assert dup.status_code == HTTPStatus.BAD_REQUEST
    assert dup.json()["kind"] == "validation_error"

    moved = client.put(f"/agenda-items/{second['id']}", json={"orderIndex": 0}, headers=_auth(user))
    assert moved.status_code == HTTPStatus.BAD_REQUEST


def test_nesting_is_limited_to_one_level(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)
    other_meeting = _meeting(client, user)
    section = _add_item(client, user, meeting_id, title="Section")
    child = _add_item(client, user, meeting_id, title="Sous-point", parentId=section["id"])
    foreign = _add_item(client, user, other_meeting, title="Ailleurs")

    grandchild = client.post(
        f"/meetings/{meeting_id}/agenda",
        json={"title": "Trop profond", "parentId": child["id"]},
        headers=_auth(user),
    )
    assert grandchild.status_code == HTTPStatus.BAD_REQUEST

    cross = client.post(
        f"/meetings/{meeting_id}/agenda",
        json={"title": "Mauvais parent", "parentId": foreign["id"]},
        headers=_auth(user),
    )
    assert cross.status_code == HTTPStatus.BAD_REQUEST

    self_parent = client.put(f"/agenda-items/{section['id']}", json={"parentId": section["id"]}, headers=_auth(user))
    assert self_parent.status_code == HTTPStatus.BAD_REQUEST


def test_update_content_and_completion(client, make_user):
    manager = make_user()
    editor = make_user(permissions={"canView": True, "canEdit": True})
    meeting_id = _meeting(client, manager)
    item = _add_item(client, manager, meeting_id, title="Rapport moral", duration=15)

    forbidden = client.put(f"/agenda-items/{item['id']}", json={"title": "Rapport"}, headers=_auth(editor))
    assert forbidden.status_code == HTTPStatus.FORBIDDEN

    content = client.put(
        f"/agenda-items/{item['id']}/content",
        json={"content": "<p>Texte du rapport</p>"},
        headers=_auth(editor),
    )
    assert content.status_code == HTTPStatus.OK
    assert content.json()["content"] == "<p>Texte du rapport</p>"

    done = client.post(f"/agenda-items/{item['id']}/complete", json={"completed": True}, headers=_auth(manager))
    assert done.status_code == HTTPStatus.OK
    assert done.json()["status"] == "completed"
    assert done.json()["completedAt"] is not None

    agenda = client.get(f"/meetings/{meeting_id}/agenda", headers=_auth(manager)).json()
    assert agenda["durations"] == {"totalMinutes": 15, "completedMinutes": 15, "remainingMinutes": 0}

    reopened = client.post(f"/agenda-items/{item['id']}/complete", json={"completed": False}, headers=_auth(manager))
    assert reopened.json()["status"] == "pending"
    assert reopened.json()["completedAt"] is None


def test_partial_update_keeps_untouched_fields(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)
    item = _add_item(client, user, meeting_id, title="Budget", duration=10, type="decision")

    resp = client.put(f"/agenda-items/{item['id']}", json={"duration": 12}, headers=_auth(user))

    assert resp.status_code == HTTPStatus.OK
    assert resp.json()["duration"] == 12
    assert resp.json()["title"] == "Budget"
    assert resp.json()["type"] == "decision"

    cleared = client.put(f"/agenda-items/{item['id']}", json={"title": None}, headers=_auth(user))
    assert cleared.status_code == HTTPStatus.BAD_REQUEST


def test_status_update_stamps_start_and_completion_times(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)
    item = _add_item(client, user, meeting_id, title="Budget", duration=10)
    assert (item["startedAt"], item["completedAt"]) == (None, None)

    started = client.put(f"/agenda-items/{item['id']}", json={"status": "in_progress"}, headers=_auth(user))
    assert started.status_code == HTTPStatus.OK
    assert started.json()["startedAt"] is not None
    assert started.json()["completedAt"] is None

    done = client.put(f"/agenda-items/{item['id']}", json={"status": "completed"}, headers=_auth(user))
    assert done.status_code == HTTPStatus.OK
    assert done.json()["status"] == "completed"
    assert done.json()["completedAt"] is not None
    assert done.json()["startedAt"] == started.json()["startedAt"]

    summary = client.get(f"/meetings/{meeting_id}/agenda", headers=_auth(user)).json()["durations"]
    assert summary["completedMinutes"] == 10

    reopened = client.put(f"/agenda-items/{item['id']}", json={"status": "pending"}, headers=_auth(user))
    assert reopened.status_code == HTTPStatus.OK
    assert reopened.json()["status"] == "pending"
    assert reopened.json()["completedAt"] is None
    assert reopened.json()["startedAt"] == started.json()["startedAt"]

    unknown = client.put(f"/agenda-items/{item['id']}", json={"status": "archived"}, headers=_auth(user))
    assert unknown.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_delete_agenda_item(client, make_user):
    user = make_user()
    meeting_id = _meeting(client, user)
    item = _add_item(client, user, meeting_id, title="À supprimer")

    assert client.delete(f"/agenda-items/{item['id']}", headers=_auth(user)).status_code == HTTPStatus.NO_CONTENT
    assert client.get(f"/agenda-items/{item['id']}", headers=_auth(user)).status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/agenda-items/{item['id']}", headers=_auth(user)).status_code == HTTPStatus.NOT_FOUND
