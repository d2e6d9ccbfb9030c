"""Middleware package initialization"""
from app.middleware.prometheus import (
    PrometheusMiddleware,
    active_participants,
    meeting_joins_total,
    meeting_leaves_total,
    metrics_endpoint,
)

__all__ = [
    "PrometheusMiddleware",
    "active_participants",
    "meeting_joins_total",
    "meeting_leaves_total",
    "metrics_endpoint",
]
