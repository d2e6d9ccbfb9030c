"""In-process brute-force protection for the login endpoint."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock

from app.core.config import settings


class LoginThrottle:
    """Locks an identifier (ip:email) after too many consecutive failures."""

    def __init__(self, max_attempts: int, lock_minutes: int) -> None:
        self.max_attempts = max_attempts
        self.lock_for = timedelta(minutes=lock_minutes)
        self._lock = Lock()
        self._failures: dict[str, int] = {}
        self._locked_until: dict[str, datetime] = {}

    def _expire(self, identifier: str, now: datetime) -> None:
        until = self._locked_until.get(identifier)
        if until and until <= now:
            self._locked_until.pop(identifier, None)
            self._failures.pop(identifier, None)

    def retry_after(self, identifier: str) -> int:
        """Seconds until the identifier may log in again; 0 when allowed."""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._expire(identifier, now)
            until = self._locked_until.get(identifier)
            return int(max((until - now).total_seconds(), 0)) if until else 0

    def failed(self, identifier: str) -> int:
        """Record a failure; returns the lockout length in seconds, or 0."""
        now = datetime.now(timezone.utc)
        with self._lock:
            self._expire(identifier, now)
            attempts = self._failures.get(identifier, 0) + 1
            self._failures[identifier] = attempts
            if attempts < self.max_attempts:
                return 0
            self._locked_until[identifier] = now + self.lock_for
            return int(self.lock_for.total_seconds())

    def succeeded(self, identifier: str) -> None:
        with self._lock:
            self._failures.pop(identifier, None)
            self._locked_until.pop(identifier, None)


login_throttle = LoginThrottle(settings.login_max_attempts, settings.login_lock_minutes)
