"""
api/limiter.py -- Rate limiting for the VetDir REST API.

One Limiter instance is shared by api/main.py (middleware and the 429
handler) and the route modules (per-route @limiter.limit()). Separate
instances would keep separate counters and never trip.

Counters live in process memory. Multiple workers each enforce the limit
on their own.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def profile_rate_limit() -> str:
    """Limit string for GET /profile, read from settings on every check."""
    return get_settings().profile_rate_limit
