"""
api/limiter.py -- Shared slowapi rate limiter for the credential endpoints.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies
credential_limit to register and login, the two endpoints that run bcrypt on
attacker-chosen input and so double as brute-force and CPU-exhaustion targets.

One shared instance means one in-memory counter store. A limiter per module
would keep separate counters and never trip.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def credential_limit() -> str:
    """Per-client-IP limit for register and login, e.g. "10/minute".

    slowapi calls this on every request, so the value always matches the
    Settings instance in use.
    """
    return get_settings().login_rate_limit
