"""
Celery Application for Background Tasks
========================================
Runs the stale-participant sweeper on a beat schedule.
"""
import logging
from celery import Celery
from app.core.config import settings

logger = logging.getLogger("huddle.celery")

celery_app = Celery(
    "huddle",
    broker=settings.get_celery_broker_url,
    backend=settings.get_celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=200,
    beat_schedule={
        "sweep-stale-participants": {
            "task": "app.tasks.attendance_tasks.sweep_stale_participants_task",
            "schedule": float(settings.sweep_interval_secs),
        },
    },
)

celery_app.autodiscover_tasks(["app.tasks"], related_name="attendance_tasks")

logger.info("Celery app configured successfully")
