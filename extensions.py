"""
Shared Flask extensions (rate limiter, CORS).

Created here without an app so blueprints can import them; bound in create_app().
"""

from __future__ import annotations

from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def _create_limiter() -> Limiter:
    """Fixed-window limiter keyed by client IP; limits come from RATELIMIT_DEFAULT."""
    return Limiter(key_func=get_remote_address, strategy="fixed-window")


limiter = _create_limiter()
cors = CORS()
