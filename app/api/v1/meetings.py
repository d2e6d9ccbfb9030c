"""
Meetings API: Scheduling, Join/Leave Tracking, and Attendance Reports
"""
import logging
import secrets
import string
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.media import create_room_token
from app.core.security import sanitize_input
from app.db.session import get_db
from app.middleware.prometheus import meeting_joins_total, meeting_leaves_total
from app.models.meeting import Meeting
from app.models.participant import MeetingParticipant
from app.models.submission import Submission
from app.models.user import User
from app.schemas.meeting import (
    AttendanceReportOut,
    JoinMeetingOut,
    MeetingCodeRequest,
    MeetingCreate,
    MeetingOut,
    MeetingSessionOut,
)
from app.services import participation
from app.services.attendance import build_attendance_report

router = APIRouter(prefix="/meetings", tags=["meetings"])
logger = logging.getLogger("huddle.meetings")

CODE_ATTEMPTS = 5


# ── Helpers ───────────────────────────────────────────────
def _generate_meeting_code() -> str:
    """Generate a human-readable meeting code like 'abc-defg-hij'."""
    chars = string.ascii_lowercase
    p1 = ''.join(secrets.choice(chars) for _ in range(3))
    p2 = ''.join(secrets.choice(chars) for _ in range(4))
    p3 = ''.join(secrets.choice(chars) for _ in range(3))
    return f"{p1}-{p2}-{p3}"


async def _unused_code(db: AsyncSession) -> str:
    for _ in range(CODE_ATTEMPTS):
        code = _generate_meeting_code()
        taken = await db.execute(select(Meeting.id).where(Meeting.code == code))
        if taken.scalar_one_or_none() is None:
            return code
    raise RuntimeError("Could not allocate a unique meeting code")


async def _meeting_by_code_or_404(db: AsyncSession, code: str) -> Meeting:
    meeting = await participation.get_meeting_by_code(db, code)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found. Please check the meeting code.")
    return meeting


async def _hosted_meeting_or_403(db: AsyncSession, meeting_id: int, user: User) -> Meeting:
    meeting = await participation.get_meeting(db, meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found")
    if meeting.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the host can do this")
    return meeting


async def _session_state(db: AsyncSession, meeting_id: int, user_id: int) -> dict:
    """Re-read the meeting so every participant reflects committed state."""
    meeting = await participation.get_meeting(db, meeting_id, refresh=True)
    return {
        "meeting": meeting,
        "participant": participation.find_participant(meeting, user_id),
    }


# ── Create Meeting ────────────────────────────────────────
@router.post("", response_model=MeetingOut, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    payload: MeetingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = Meeting(
        user_id=current_user.id,
        title=sanitize_input(payload.title),
        description=sanitize_input(payload.description) if payload.description else None,
        code=await _unused_code(db),
        duration_in_secs=0,
    )
    db.add(meeting)
    await db.commit()

    logger.info("Created meeting %d (code: %s) for user %d", meeting.id, meeting.code, current_user.id)
    return await participation.get_meeting(db, meeting.id, refresh=True)


# ── Listings ─────────────────────────────────────────────
@router.get("/meetings", response_model=list[MeetingOut])
async def my_meetings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Meetings the caller hosts or has attended."""
    stmt = (
        participation.meeting_query()
        .where(
            or_(
                Meeting.user_id == current_user.id,
                Meeting.participants.any(MeetingParticipant.user_id == current_user.id),
            )
        )
        .order_by(desc(Meeting.created_at))
    )
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/created", response_model=list[MeetingOut])
async def created_meetings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stmt = (
        participation.meeting_query()
        .where(Meeting.user_id == current_user.id)
        .order_by(desc(Meeting.created_at))
    )
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/ongoing", response_model=list[MeetingOut])
async def ongoing_meetings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Caller's meetings that currently have someone connected."""
    stmt = (
        participation.meeting_query()
        .where(
            Meeting.participants.any(MeetingParticipant.is_active.is_(True)),
            or_(
                Meeting.user_id == current_user.id,
                Meeting.participants.any(MeetingParticipant.user_id == current_user.id),
            ),
        )
        .order_by(desc(Meeting.start_time))
    )
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/code/{code}", response_model=MeetingOut)
async def get_meeting_state(
    code: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await _meeting_by_code_or_404(db, code)


# ── Join / Heartbeat / Leave ─────────────────────────────
@router.put("/join", response_model=JoinMeetingOut)
async def join(
    payload: MeetingCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_id, username = current_user.id, current_user.username
    meeting = await _meeting_by_code_or_404(db, payload.code)
    meeting_id, code = meeting.id, meeting.code

    await participation.join_meeting(db, meeting, current_user)
    meeting_joins_total.inc()
    logger.info("User %d joined meeting %d", user_id, meeting_id)

    state = await _session_state(db, meeting_id, user_id)
    return {
        **state,
        "token": create_room_token(str(user_id), username, code),
        "server_url": settings.livekit_url,
    }


@router.put("/heartbeat", response_model=MeetingSessionOut)
async def heartbeat(
    payload: MeetingCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = await _meeting_by_code_or_404(db, payload.code)
    participant = await participation.heartbeat(db, meeting, current_user)
    if participant is None:
        raise HTTPException(status_code=404, detail="You have not joined this meeting")
    return await _session_state(db, meeting.id, current_user.id)


@router.put("/leave", response_model=MeetingSessionOut)
async def leave(
    payload: MeetingCodeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = await _meeting_by_code_or_404(db, payload.code)
    participant = await participation.leave_meeting(db, meeting, current_user)
    if participant is None:
        raise HTTPException(status_code=404, detail="You have not joined this meeting")
    meeting_leaves_total.inc()
    logger.info(
        "User %d left meeting %d after %ds", current_user.id, meeting.id, participant.duration_in_secs
    )
    return await _session_state(db, meeting.id, current_user.id)


# ── Attendance ───────────────────────────────────────────
@router.get("/{meeting_id}/attendance", response_model=AttendanceReportOut)
async def attendance(
    meeting_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = await _hosted_meeting_or_403(db, meeting_id, current_user)
    return asdict(build_attendance_report(meeting))


# ── Delete Meeting ───────────────────────────────────────
@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(
    meeting_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    meeting = await _hosted_meeting_or_403(db, meeting_id, current_user)
    # Submissions are not loaded with the meeting, remove them in bulk
    await db.execute(delete(Submission).where(Submission.meeting_id == meeting_id))
    await db.delete(meeting)
    await db.commit()
    logger.info("Deleted meeting %d", meeting_id)
