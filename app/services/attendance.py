"""
Attendance Calculations
=======================
Attendance is measured against the host: a participant who was connected
for as long as the host scores 100%, half as long scores 50%. Everything
here is pure and works on ORM rows or anything shaped like them.
"""
from dataclasses import dataclass, field

LOW_ATTENDANCE_THRESHOLD = 50


def attendance_percentage(participant_secs: int, host_secs: int) -> int:
    """Percentage of the host's attended time, rounded half-up and capped at 100.

    Returns 0 when the host has no recorded time.
    """
    if host_secs <= 0:
        return 0
    attended = max(0, min(participant_secs, host_secs))
    # floor(attended / host * 100 + 0.5) in exact integer arithmetic
    return (200 * attended + host_secs) // (2 * host_secs)


def find_host(meeting):
    """Participant row belonging to the meeting's owner, if the owner joined."""
    return next((p for p in meeting.participants if p.user_id == meeting.user_id), None)


@dataclass
class AttendanceEntry:
    participant_id: int
    user_id: int
    username: str
    duration_in_secs: int
    attendance_percentage: int
    is_host: bool
    is_active: bool
    low_attendance: bool


@dataclass
class AttendanceReport:
    meeting_id: int
    title: str
    host_duration_in_secs: int
    entries: list[AttendanceEntry] = field(default_factory=list)


def build_attendance_report(meeting) -> AttendanceReport:
    host = find_host(meeting)
    host_secs = host.duration_in_secs if host else 0
    report = AttendanceReport(
        meeting_id=meeting.id,
        title=meeting.title,
        host_duration_in_secs=host_secs,
    )
    for p in meeting.participants:
        pct = attendance_percentage(p.duration_in_secs, host_secs)
        report.entries.append(
            AttendanceEntry(
                participant_id=p.id,
                user_id=p.user_id,
                username=p.user.username if p.user is not None else "",
                duration_in_secs=p.duration_in_secs,
                attendance_percentage=pct,
                is_host=p.user_id == meeting.user_id,
                is_active=p.is_active,
                low_attendance=pct < LOW_ATTENDANCE_THRESHOLD,
            )
        )
    return report


def format_duration(seconds: int) -> str:
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


def format_clock(seconds: int) -> str:
    """Elapsed-time counter text, e.g. 05:07 or 01:02:03."""
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
