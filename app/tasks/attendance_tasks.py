"""
Background Attendance Tasks
===========================
Participants whose browser vanished without a leave request stop sending
heartbeats; the sweeper flips them inactive so they drop out of ongoing
meetings and stop being counted as present.
"""
import logging
from datetime import datetime

from celery import shared_task
from sqlalchemy import func, select

from app.core.config import settings

logger = logging.getLogger("huddle.tasks")


@shared_task
def sweep_stale_participants_task(stale_after_secs: int | None = None) -> dict:
    """
    Mark participants inactive when no heartbeat arrived within the threshold.

    Args:
        stale_after_secs: Override for settings.participant_stale_after_secs

    Returns:
        dict with the number of rows swept and still active
    """
    from app.db.session import SessionLocal
    from app.middleware.prometheus import active_participants, stale_participants_swept_total
    from app.models.participant import MeetingParticipant
    from app.services.participation import sweep_stale_participants

    threshold = stale_after_secs or settings.participant_stale_after_secs
    db = SessionLocal()
    try:
        swept = sweep_stale_participants(db, datetime.utcnow(), threshold)
        still_active = db.execute(
            select(func.count(MeetingParticipant.id)).where(MeetingParticipant.is_active.is_(True))
        ).scalar() or 0
    finally:
        db.close()

    stale_participants_swept_total.inc(swept)
    active_participants.set(still_active)
    if swept:
        logger.info("Swept %d stale participants (threshold %ds)", swept, threshold)
    return {"status": "success", "swept": swept, "active": still_active}
