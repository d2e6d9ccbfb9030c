"""
Prometheus Metrics Middleware
==============================
Exposes application metrics for monitoring.
"""
import time
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from sqlalchemy import func, select
from starlette.middleware.base import BaseHTTPMiddleware

from app.db.session import AsyncSessionLocal
from app.models.participant import MeetingParticipant

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"]
)

meeting_joins_total = Counter(
    "meeting_joins_total",
    "Join requests accepted"
)

meeting_leaves_total = Counter(
    "meeting_leaves_total",
    "Leave requests accepted"
)

stale_participants_swept_total = Counter(
    "stale_participants_swept_total",
    "Participants marked inactive after their heartbeats stopped"
)

active_participants = Gauge(
    "active_participants",
    "Participants currently flagged active"
)


def _route_path(request: Request) -> str:
    # Label by route template so meeting ids do not explode cardinality
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        path = _route_path(request)
        http_requests_total.labels(
            method=request.method,
            path=path,
            status=response.status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=request.method,
            path=path
        ).observe(duration)

        return response


async def _count_active_participants() -> int:
    async with AsyncSessionLocal() as db:
        count = await db.scalar(
            select(func.count(MeetingParticipant.id)).where(MeetingParticipant.is_active.is_(True))
        )
    return count or 0


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics."""
    # Sweeps run in the Celery worker, so the database is the only shared truth
    active_participants.set(await _count_active_participants())
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
