"""
Per-client throttling for the public self-booking route.

``POST /v1/reservations/public`` is decorated with
``@limiter.limit(settings.rate_limit_public_booking)``; main.py registers
the limiter on ``app.state`` and answers overruns with slowapi's 429 handler.
Staff and admin routes sit behind a bearer token and are not throttled.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from venue_reservations.core.config import settings

# Guests are keyed by client IP; RATE_LIMIT_ENABLED=false turns it off for tests
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.rate_limit_enabled,
)
