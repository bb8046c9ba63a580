"""
Password hashing and bearer tokens.

Passwords use werkzeug.security; tokens are HS256 JWTs signed with JWT_SECRET.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash


class AuthError(Exception):
    pass


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_token(user_id: int, email: str, role: str, expires_hours: int | None = None) -> str:
    hours = expires_hours or current_app.config.get("JWT_EXPIRES_HOURS", 24)
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=hours)).timestamp()),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; the returned payload carries an int ``user_id``."""
    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["sub", "exp"]},
        )
        payload["user_id"] = int(payload["sub"])
        return payload
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired.") from exc
    except (jwt.InvalidTokenError, ValueError) as exc:
        raise AuthError("Invalid token.") from exc
