"""
Session Tracker
===============
Client-side companion to the join/leave endpoints. After joining it runs
two independent loops:

  - a local tick that bumps ``elapsed`` every second so a clock can be
    shown without talking to the server, and
  - a refresh that sends a heartbeat every ten seconds and replaces the
    meeting state with the server's copy.

Both loops only assign tracker attributes, so they need no locking. The
local counter is optimistic; the server's ``duration_in_secs`` is the
authoritative number and is what attendance reports use.
"""
import asyncio
import logging

import httpx

from app.core.config import settings
from app.services.attendance import format_clock

logger = logging.getLogger("huddle.tracker")


class SessionTracker:
    def __init__(
        self,
        client: httpx.AsyncClient,
        code: str,
        *,
        tick_secs: float | None = None,
        refresh_secs: float | None = None,
    ) -> None:
        self.client = client
        self.code = code
        self.tick_secs = tick_secs or settings.tracker_tick_secs
        self.refresh_secs = refresh_secs or settings.tracker_refresh_secs

        self.elapsed = 0
        self.token: str | None = None
        self.server_url: str | None = None
        self.meeting: dict | None = None
        self.participant: dict | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def joined(self) -> bool:
        return bool(self._tasks)

    @property
    def clock(self) -> str:
        return format_clock(self.elapsed)

    async def _put(self, path: str) -> dict:
        response = await self.client.put(path, json={"code": self.code})
        response.raise_for_status()
        return response.json()

    async def join(self) -> dict:
        """Join the meeting and start the tick and refresh loops.

        HTTP errors propagate; nothing is started when the join fails.
        """
        if self.joined:
            return {"meeting": self.meeting, "participant": self.participant}
        body = await self._put("meetings/join")
        self.token = body["token"]
        self.server_url = body.get("server_url")
        self.meeting = body["meeting"]
        self.participant = body["participant"]
        self.elapsed = self.participant.get("duration_in_secs") or 0

        self._tasks = [
            asyncio.create_task(self._tick_loop()),
            asyncio.create_task(self._refresh_loop()),
        ]
        logger.info("Joined %s at %s", self.code, self.clock)
        return body

    async def refresh(self) -> dict:
        body = await self._put("meetings/heartbeat")
        self.meeting = body["meeting"]
        self.participant = body["participant"]
        return body

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_secs)
            self.elapsed += 1

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_secs)
            try:
                await self.refresh()
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
                # Transport errors and malformed bodies alike; keep polling
                logger.warning("Refresh for %s failed: %r", self.code, exc)

    async def _stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error("Tracker loop for %s had died: %r", self.code, result)

    async def leave(self) -> dict | None:
        """Stop both loops, then report the leave to the server."""
        if not self.joined:
            return None
        await self._stop()
        body = await self._put("meetings/leave")
        self.meeting = body["meeting"]
        self.participant = body["participant"]
        logger.info(
            "Left %s, local clock %s, server duration %ss",
            self.code, self.clock, self.participant.get("duration_in_secs"),
        )
        return body

    async def __aenter__(self) -> "SessionTracker":
        await self.join()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.leave()
