"""
Meeting Schemas: Pydantic models for request/response validation.
"""
from datetime import datetime

from pydantic import BaseModel, Field


class MeetingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class MeetingCodeRequest(BaseModel):
    code: str = Field(min_length=5, max_length=20)


class ParticipantUser(BaseModel):
    id: int
    username: str
    email: str

    class Config:
        from_attributes = True


class ParticipantOut(BaseModel):
    id: int
    meeting_id: int
    user_id: int
    join_time: datetime
    duration_in_secs: int
    is_active: bool
    user: ParticipantUser | None = None

    class Config:
        from_attributes = True


class MeetingOut(BaseModel):
    id: int
    title: str
    code: str
    user_id: int
    description: str | None = None
    start_time: datetime | None = None
    duration_in_secs: int = 0
    created_at: datetime
    updated_at: datetime | None = None
    participants: list[ParticipantOut] = []

    class Config:
        from_attributes = True


class JoinMeetingOut(BaseModel):
    token: str
    server_url: str
    meeting: MeetingOut
    participant: ParticipantOut


class MeetingSessionOut(BaseModel):
    """Returned by heartbeat and leave: authoritative state after the update."""
    meeting: MeetingOut
    participant: ParticipantOut


class AttendanceEntryOut(BaseModel):
    participant_id: int
    user_id: int
    username: str
    duration_in_secs: int
    attendance_percentage: int
    is_host: bool
    is_active: bool
    low_attendance: bool

    class Config:
        from_attributes = True


class AttendanceReportOut(BaseModel):
    meeting_id: int
    title: str
    host_duration_in_secs: int
    entries: list[AttendanceEntryOut] = []

    class Config:
        from_attributes = True
