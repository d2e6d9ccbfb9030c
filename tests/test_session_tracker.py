import asyncio
import json
import uuid

import httpx
import pytest

from app.client.session_tracker import SessionTracker
from app.main import app

TICK = 0.01
REFRESH = 0.03


def _fake_server(duration=30, fail_heartbeat=False, fail_join=False, garbled_heartbeat=False):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        action = request.url.path.rsplit("/", 1)[-1]
        calls.append(action)
        code = json.loads(request.content)["code"]
        if action == "join" and fail_join:
            return httpx.Response(404, json={"detail": "Meeting not found"})
        if action == "heartbeat" and fail_heartbeat:
            return httpx.Response(500, json={"detail": "boom"})
        if action == "heartbeat" and garbled_heartbeat:
            return httpx.Response(200, json={"detail": "not a session"})
        participant = {"id": 1, "duration_in_secs": duration, "is_active": action != "leave"}
        body = {"meeting": {"code": code, "participants": [participant]}, "participant": participant}
        if action == "join":
            body.update(token="room-token", server_url="ws://livekit.test")
        return httpx.Response(200, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test/api/v1/")
    return client, calls


def test_join_starts_local_clock_from_server_duration():
    async def scenario():
        client, calls = _fake_server(duration=30)
        async with client:
            tracker = SessionTracker(client, "abc-defg-hij", tick_secs=TICK, refresh_secs=REFRESH)
            await tracker.join()
            assert tracker.token == "room-token"
            assert tracker.server_url == "ws://livekit.test"
            assert tracker.elapsed == 30

            await asyncio.sleep(0.15)
            assert tracker.elapsed > 30
            assert "heartbeat" in calls

            await tracker.leave()
            stopped_at = tracker.elapsed
            await asyncio.sleep(0.05)
            assert tracker.elapsed == stopped_at
            assert not tracker.joined
            assert calls[0] == "join"
            assert calls[-1] == "leave"
            assert tracker.participant["is_active"] is False

    asyncio.run(scenario())


def test_failed_join_raises_and_starts_nothing():
    async def scenario():
        client, calls = _fake_server(fail_join=True)
        async with client:
            tracker = SessionTracker(client, "nope-nope-no", tick_secs=TICK, refresh_secs=REFRESH)
            with pytest.raises(httpx.HTTPStatusError):
                await tracker.join()
            assert not tracker.joined
            assert await tracker.leave() is None
            assert calls == ["join"]

    asyncio.run(scenario())


def test_refresh_failures_do_not_stop_the_loops():
    async def scenario():
        client, calls = _fake_server(fail_heartbeat=True)
        async with client:
            tracker = SessionTracker(client, "abc-defg-hij", tick_secs=TICK, refresh_secs=REFRESH)
            await tracker.join()
            await asyncio.sleep(0.15)
            assert calls.count("heartbeat") >= 2
            assert tracker.joined
            await tracker.leave()

    asyncio.run(scenario())


def test_garbled_refresh_keeps_polling_and_still_leaves():
    async def scenario():
        client, calls = _fake_server(garbled_heartbeat=True)
        async with client:
            tracker = SessionTracker(client, "abc-defg-hij", tick_secs=TICK, refresh_secs=REFRESH)
            await tracker.join()
            await asyncio.sleep(0.15)
            assert calls.count("heartbeat") >= 2

            body = await tracker.leave()
            assert calls[-1] == "leave"
            assert body["participant"]["is_active"] is False
            assert not tracker.joined

    asyncio.run(scenario())


def test_tracker_against_app(client):
    """Drive the real endpoints through ASGI with fast timers."""

    async def scenario():
        name = f"tracker_{uuid.uuid4().hex[:8]}"
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver/api/v1/") as api:
            registered = await api.post(
                "register",
                json={"username": name, "email": f"{name}@example.com", "password": "testpass123"},
            )
            assert registered.status_code == 201
            api.headers["Authorization"] = f"Bearer {registered.json()['access_token']}"

            created = await api.post("meetings", json={"title": "Tracked"})
            code = created.json()["code"]

            async with SessionTracker(api, code, tick_secs=TICK, refresh_secs=REFRESH) as tracker:
                assert tracker.participant["is_active"] is True
                await asyncio.sleep(0.1)

            assert tracker.participant["is_active"] is False
            assert tracker.meeting["code"] == code
            assert len(tracker.meeting["participants"]) == 1

    asyncio.run(scenario())
