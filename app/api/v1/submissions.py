"""
Submissions API: file attachments handed in for a meeting.

Only metadata is stored; the file itself lives at ``file_url``.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.deps import get_current_user
from app.core.security import sanitize_input
from app.db.session import get_db
from app.models.submission import Submission
from app.models.user import User
from app.schemas.submission import SubmissionCreate, SubmissionOut
from app.services import participation

router = APIRouter(prefix="/submissions", tags=["submissions"])
logger = logging.getLogger("huddle.submissions")


async def _find_submission(db: AsyncSession, meeting_id: int, user_id: int) -> Submission | None:
    result = await db.execute(
        select(Submission).where(
            Submission.meeting_id == meeting_id,
            Submission.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


def _fill(submission: Submission, payload: SubmissionCreate) -> None:
    submission.file_url = str(payload.file_url)
    submission.file_name = sanitize_input(payload.file_name)
    submission.file_type = payload.file_type
    submission.file_size = payload.file_size


@router.post("", response_model=SubmissionOut, status_code=status.HTTP_201_CREATED)
async def submit(
    payload: SubmissionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create the caller's submission, or replace it if one already exists."""
    user_id = current_user.id
    meeting = await participation.get_meeting(db, payload.meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found")
    meeting_id = meeting.id
    is_host = meeting.user_id == user_id
    if not is_host and participation.find_participant(meeting, user_id) is None:
        raise HTTPException(status_code=403, detail="Join the meeting before submitting")

    submission = await _find_submission(db, meeting_id, user_id)
    if submission is None:
        submission = Submission(meeting_id=meeting_id, user_id=user_id)
        db.add(submission)
    _fill(submission, payload)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent first submission won the insert; overwrite that row
        await db.rollback()
        logger.info("Concurrent submission for user %d in meeting %d", user_id, meeting_id)
        submission = await _find_submission(db, meeting_id, user_id)
        _fill(submission, payload)
        await db.commit()

    logger.info(
        "User %d submitted %s (%d bytes) to meeting %d",
        user_id, submission.file_name, submission.file_size, meeting_id,
    )
    result = await db.execute(
        select(Submission)
        .options(selectinload(Submission.user))
        .where(Submission.id == submission.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@router.get("/meeting/{meeting_id}", response_model=list[SubmissionOut])
@router.get("/{meeting_id}", response_model=list[SubmissionOut], include_in_schema=False)
async def list_submissions(
    meeting_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The host sees every submission; anyone else only their own."""
    meeting = await participation.get_meeting(db, meeting_id)
    if not meeting:
        raise HTTPException(status_code=404, detail="Meeting not found")

    stmt = (
        select(Submission)
        .options(selectinload(Submission.user))
        .where(Submission.meeting_id == meeting_id)
        .order_by(desc(Submission.created_at))
    )
    if meeting.user_id != current_user.id:
        stmt = stmt.where(Submission.user_id == current_user.id)
    result = await db.execute(stmt)
    return result.scalars().all()
