from app.db.base import Base
from app.models.user import User
from app.models.meeting import Meeting
from app.models.participant import MeetingParticipant
from app.models.submission import Submission
from app.models.auth_token_blocklist import AuthTokenBlocklist

__all__ = [
    "Base",
    "User",
    "Meeting",
    "MeetingParticipant",
    "Submission",
    "AuthTokenBlocklist",
]
