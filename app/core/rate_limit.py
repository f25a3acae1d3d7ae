from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Initialize rate limiter, keyed by client address
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

LOGIN_RATE_LIMIT = "5/minute"
ME_RATE_LIMIT = "30/minute"
CHAT_RATE_LIMIT = settings.CHAT_RATE_LIMIT
