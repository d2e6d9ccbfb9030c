# Import every model so Base.metadata knows about all tables
from app.db.base_class import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.meeting import Meeting  # noqa: F401
from app.models.participant import MeetingParticipant  # noqa: F401
from app.models.submission import Submission  # noqa: F401
from app.models.auth_token_blocklist import AuthTokenBlocklist  # noqa: F401
