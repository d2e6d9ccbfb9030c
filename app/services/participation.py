"""
Participation Bookkeeping
=========================
Server side of the session tracker. A MeetingParticipant row exists once
per (user, meeting); joining again reactivates it. Attended seconds are
credited lazily: each heartbeat or leave adds the whole seconds elapsed
since ``last_seen_at`` and moves the checkpoint forward by exactly that
amount, so fractions carry over to the next credit.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, selectinload

from app.models.meeting import Meeting
from app.models.participant import MeetingParticipant
from app.models.user import User

logger = logging.getLogger("huddle.participation")


def _now() -> datetime:
    return datetime.utcnow()


def normalize_code(code: str) -> str:
    return code.strip().lower()


def accrue(participant: MeetingParticipant, now: datetime) -> int:
    """Credit elapsed whole seconds to an active participant. Returns seconds added."""
    if not participant.is_active:
        return 0
    elapsed = int((now - participant.last_seen_at).total_seconds())
    if elapsed <= 0:
        return 0
    participant.duration_in_secs += elapsed
    participant.last_seen_at += timedelta(seconds=elapsed)
    return elapsed


def _credit(meeting: Meeting, participant: MeetingParticipant, now: datetime) -> None:
    accrue(participant, now)
    if participant.user_id == meeting.user_id:
        meeting.duration_in_secs = max(meeting.duration_in_secs or 0, participant.duration_in_secs)


def meeting_query():
    return select(Meeting).options(
        selectinload(Meeting.participants).selectinload(MeetingParticipant.user),
        selectinload(Meeting.user),
    )


async def get_meeting_by_code(db: AsyncSession, code: str, *, refresh: bool = False) -> Meeting | None:
    stmt = meeting_query().where(Meeting.code == normalize_code(code))
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_meeting(db: AsyncSession, meeting_id: int, *, refresh: bool = False) -> Meeting | None:
    stmt = meeting_query().where(Meeting.id == meeting_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def find_participant(meeting: Meeting, user_id: int) -> MeetingParticipant | None:
    return next((p for p in meeting.participants if p.user_id == user_id), None)


def _mark_started(meeting: Meeting, now: datetime) -> None:
    if meeting.start_time is None:
        meeting.start_time = now


def _activate(meeting: Meeting, participant: MeetingParticipant, now: datetime) -> None:
    if participant.is_active:
        _credit(meeting, participant, now)
        return
    participant.is_active = True
    participant.join_time = now
    participant.last_seen_at = now


async def join_meeting(db: AsyncSession, meeting: Meeting, user: User) -> MeetingParticipant:
    """Create or reactivate the caller's participant row and commit."""
    now = _now()
    meeting_id, user_id = meeting.id, user.id
    _mark_started(meeting, now)

    participant = find_participant(meeting, user_id)
    if participant is not None:
        _activate(meeting, participant, now)
        await db.commit()
        return participant

    participant = MeetingParticipant(
        user_id=user_id,
        join_time=now,
        last_seen_at=now,
        duration_in_secs=0,
        is_active=True,
    )
    participant.user = user
    meeting.participants.append(participant)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent join inserted the row first; reactivate that one
        await db.rollback()
        logger.info("Concurrent join for user %s in meeting %s", user_id, meeting_id)
        meeting = await get_meeting(db, meeting_id, refresh=True)
        participant = find_participant(meeting, user_id)
        _mark_started(meeting, now)
        _activate(meeting, participant, now)
        await db.commit()
    return participant


async def heartbeat(db: AsyncSession, meeting: Meeting, user: User) -> MeetingParticipant | None:
    """Credit time since the last checkpoint.

    A row the stale sweeper deactivated is resumed from now; the silent gap
    before this heartbeat is not credited.
    """
    participant = find_participant(meeting, user.id)
    if participant is None:
        return None
    now = _now()
    if participant.is_active:
        _credit(meeting, participant, now)
    else:
        logger.info("Resuming swept participant %s in meeting %s", participant.id, meeting.id)
        participant.is_active = True
        participant.last_seen_at = now
    await db.commit()
    return participant


async def leave_meeting(db: AsyncSession, meeting: Meeting, user: User) -> MeetingParticipant | None:
    participant = find_participant(meeting, user.id)
    if participant is None:
        return None
    _credit(meeting, participant, _now())
    participant.is_active = False
    await db.commit()
    return participant


def sweep_stale_participants(db: Session, now: datetime, stale_after_secs: int) -> int:
    """Deactivate participants whose heartbeats stopped. Returns rows affected.

    Nothing is credited past the last heartbeat.
    """
    cutoff = now - timedelta(seconds=stale_after_secs)
    result = db.execute(
        update(MeetingParticipant)
        .where(
            MeetingParticipant.is_active.is_(True),
            MeetingParticipant.last_seen_at < cutoff,
        )
        .values(is_active=False)
    )
    db.commit()
    return result.rowcount or 0
