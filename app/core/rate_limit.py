from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Initialize limiter instance here to be imported by routers
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
