"""Tasks package initialization"""
from app.tasks.attendance_tasks import sweep_stale_participants_task

__all__ = [
    "sweep_stale_participants_task",
]
