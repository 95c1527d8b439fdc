"""
Rate limiter configuration using SlowAPI.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

# Create a limiter instance that uses the client's IP address
limiter = Limiter(key_func=get_remote_address)

# Write endpoints only; spatial reads are left unthrottled.
HIGHSCORE_SUBMIT_LIMIT = "10/minute"
DISCOVERY_WRITE_LIMIT = "60/minute"
MIGRATION_LIMIT = "5/minute"
SESSION_WRITE_LIMIT = "30/minute"
CLUE_WRITE_LIMIT = "120/minute"


def rate_limit_disabled(request: Request) -> bool:
    """Exempt requests served by an app whose settings switch rate limiting off."""
    return not request.app.state.settings.rate_limit_enabled
