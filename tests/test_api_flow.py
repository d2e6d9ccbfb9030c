from datetime import datetime, timedelta

import pytest

from app.core.media import decode_room_token
from app.db.session import SessionLocal
from app.services import participation
from app.services.participation import sweep_stale_participants

T0 = datetime(2030, 1, 1, 10, 0, 0)


@pytest.fixture
def clock(monkeypatch):
    """Pin the participation clock; call clock(seconds) to move it."""
    state = {"now": T0}
    monkeypatch.setattr(participation, "_now", lambda: state["now"])

    def _set(seconds: int):
        state["now"] = T0 + timedelta(seconds=seconds)

    return _set


def _create_meeting(client, headers, title="Weekly Sync"):
    response = client.post(
        "/api/v1/meetings",
        json={"title": title, "description": "Status round"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_meeting_generates_code(client, make_user):
    host, headers = make_user("host")
    meeting = _create_meeting(client, headers)

    assert meeting["user_id"] == host["id"]
    assert len(meeting["code"]) == 12
    assert meeting["code"].count("-") == 2
    assert meeting["participants"] == []
    assert meeting["duration_in_secs"] == 0
    assert meeting["start_time"] is None


def test_join_returns_room_token_and_state(client, make_user, clock):
    host, headers = make_user("host")
    meeting = _create_meeting(client, headers)

    clock(0)
    joined = client.put("/api/v1/meetings/join", json={"code": meeting["code"].upper()}, headers=headers)
    assert joined.status_code == 200, joined.text
    body = joined.json()

    assert body["participant"]["user_id"] == host["id"]
    assert body["participant"]["is_active"] is True
    assert body["participant"]["duration_in_secs"] == 0
    assert body["meeting"]["start_time"].startswith("2030-01-01T10:00:00")

    grant = decode_room_token(body["token"])
    assert grant["sub"] == str(host["id"])
    assert grant["name"] == host["username"]
    assert grant["video"]["room"] == meeting["code"]
    assert grant["video"]["roomJoin"] is True


def test_join_unknown_code_is_404(client, make_user):
    _, headers = make_user()
    response = client.put("/api/v1/meetings/join", json={"code": "zzz-zzzz-zzz"}, headers=headers)
    assert response.status_code == 404


def test_rejoin_updates_existing_row(client, make_user, clock):
    _, host_headers = make_user("host")
    guest, guest_headers = make_user("guest")
    meeting = _create_meeting(client, host_headers)
    code = meeting["code"]

    clock(0)
    first = client.put("/api/v1/meetings/join", json={"code": code}, headers=guest_headers).json()
    clock(90)
    client.put("/api/v1/meetings/leave", json={"code": code}, headers=guest_headers)
    clock(200)
    second = client.put("/api/v1/meetings/join", json={"code": code}, headers=guest_headers).json()

    assert second["participant"]["id"] == first["participant"]["id"]
    assert second["participant"]["duration_in_secs"] == 90
    assert second["participant"]["is_active"] is True
    assert second["participant"]["join_time"].startswith("2030-01-01T10:03:20")
    guest_rows = [p for p in second["meeting"]["participants"] if p["user_id"] == guest["id"]]
    assert len(guest_rows) == 1


def test_double_join_while_active_credits_time(client, make_user, clock):
    _, headers = make_user("host")
    code = _create_meeting(client, headers)["code"]

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=headers)
    clock(45)
    again = client.put("/api/v1/meetings/join", json={"code": code}, headers=headers).json()

    assert again["participant"]["duration_in_secs"] == 45
    assert len(again["meeting"]["participants"]) == 1


def test_heartbeat_and_leave_accrue_duration(client, make_user, clock):
    _, headers = make_user("host")
    code = _create_meeting(client, headers)["code"]

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=headers)
    clock(10)
    beat = client.put("/api/v1/meetings/heartbeat", json={"code": code}, headers=headers)
    assert beat.status_code == 200
    assert beat.json()["participant"]["duration_in_secs"] == 10
    assert beat.json()["meeting"]["duration_in_secs"] == 10

    clock(25)
    left = client.put("/api/v1/meetings/leave", json={"code": code}, headers=headers).json()
    assert left["participant"]["duration_in_secs"] == 25
    assert left["participant"]["is_active"] is False

    # Time while inactive is never credited
    clock(500)
    again = client.put("/api/v1/meetings/leave", json={"code": code}, headers=headers).json()
    assert again["participant"]["duration_in_secs"] == 25


def test_heartbeat_without_join_is_404(client, make_user):
    _, host_headers = make_user("host")
    _, stranger_headers = make_user("stranger")
    code = _create_meeting(client, host_headers)["code"]

    response = client.put("/api/v1/meetings/heartbeat", json={"code": code}, headers=stranger_headers)
    assert response.status_code == 404


def test_attendance_report(client, make_user, clock):
    host, host_headers = make_user("host")
    guest, guest_headers = make_user("guest")
    meeting = _create_meeting(client, host_headers, title="Lecture")
    code = meeting["code"]

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=host_headers)
    clock(100)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=guest_headers)
    clock(400)
    client.put("/api/v1/meetings/leave", json={"code": code}, headers=guest_headers)
    clock(600)
    client.put("/api/v1/meetings/leave", json={"code": code}, headers=host_headers)

    report = client.get(f"/api/v1/meetings/{meeting['id']}/attendance", headers=host_headers)
    assert report.status_code == 200
    body = report.json()
    assert body["host_duration_in_secs"] == 600

    by_user = {e["user_id"]: e for e in body["entries"]}
    assert by_user[host["id"]]["attendance_percentage"] == 100
    assert by_user[host["id"]]["is_host"] is True
    assert by_user[guest["id"]]["duration_in_secs"] == 300
    assert by_user[guest["id"]]["attendance_percentage"] == 50
    assert by_user[guest["id"]]["low_attendance"] is False

    forbidden = client.get(f"/api/v1/meetings/{meeting['id']}/attendance", headers=guest_headers)
    assert forbidden.status_code == 403

    state = client.get(f"/api/v1/meetings/code/{code}", headers=guest_headers).json()
    assert state["duration_in_secs"] == 600


def test_listings(client, make_user, clock):
    host, host_headers = make_user("host")
    _, guest_headers = make_user("guest")
    live = _create_meeting(client, host_headers, title="Live")
    idle = _create_meeting(client, host_headers, title="Idle")

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": live["code"]}, headers=guest_headers)

    created = client.get("/api/v1/meetings/created", headers=host_headers).json()
    assert {m["id"] for m in created} == {live["id"], idle["id"]}

    host_ongoing = client.get("/api/v1/meetings/ongoing", headers=host_headers).json()
    assert [m["id"] for m in host_ongoing] == [live["id"]]

    guest_meetings = client.get("/api/v1/meetings/meetings", headers=guest_headers).json()
    assert [m["id"] for m in guest_meetings] == [live["id"]]

    clock(30)
    client.put("/api/v1/meetings/leave", json={"code": live["code"]}, headers=guest_headers)
    assert client.get("/api/v1/meetings/ongoing", headers=guest_headers).json() == []


def test_delete_meeting_host_only(client, make_user):
    _, host_headers = make_user("host")
    _, other_headers = make_user("other")
    meeting = _create_meeting(client, host_headers)

    assert client.delete(f"/api/v1/meetings/{meeting['id']}", headers=other_headers).status_code == 403
    assert client.delete(f"/api/v1/meetings/{meeting['id']}", headers=host_headers).status_code == 204
    assert client.get(f"/api/v1/meetings/code/{meeting['code']}", headers=host_headers).status_code == 404


def _active_gauge(client) -> float:
    text = client.get("/metrics").text
    line = next(l for l in text.splitlines() if l.startswith("active_participants "))
    return float(line.split()[1])


def test_metrics_report_active_participants(client, make_user, clock):
    _, headers = make_user("host")
    code = _create_meeting(client, headers)["code"]
    before = _active_gauge(client)

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=headers)
    assert _active_gauge(client) == before + 1

    clock(20)
    client.put("/api/v1/meetings/leave", json={"code": code}, headers=headers)
    assert _active_gauge(client) == before


def test_heartbeat_resumes_swept_participant(client, make_user, clock):
    _, headers = make_user("host")
    code = _create_meeting(client, headers)["code"]

    clock(0)
    client.put("/api/v1/meetings/join", json={"code": code}, headers=headers)
    clock(10)
    client.put("/api/v1/meetings/heartbeat", json={"code": code}, headers=headers)

    db = SessionLocal()
    try:
        sweep_stale_participants(db, T0 + timedelta(seconds=80), stale_after_secs=60)
    finally:
        db.close()
    state = client.get(f"/api/v1/meetings/code/{code}", headers=headers).json()
    assert state["participants"][0]["is_active"] is False

    # The silent gap between 10s and 90s is not credited
    clock(90)
    resumed = client.put("/api/v1/meetings/heartbeat", json={"code": code}, headers=headers).json()
    assert resumed["participant"]["is_active"] is True
    assert resumed["participant"]["duration_in_secs"] == 10

    clock(100)
    beat = client.put("/api/v1/meetings/heartbeat", json={"code": code}, headers=headers).json()
    assert beat["participant"]["duration_in_secs"] == 20
    assert beat["meeting"]["duration_in_secs"] == 20
