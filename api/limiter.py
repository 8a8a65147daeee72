"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and api/routes/v1/auth.py
(login and forgot-password limits via @limiter.limit()).

One shared instance means every route counts against the same in-memory
store; per-module instances would each keep their own counters.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Credential-guessing endpoints share one configurable budget per client IP.
AUTH_RATE_LIMIT = get_settings().login_rate_limit
