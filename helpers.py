"""
Shared helpers used across blueprints.

Request principal and role guards, pagination, and request-body validation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, TypeVar

from flask import g, request
from pydantic import BaseModel, ValidationError

from database import query
from roles import ROLE_GROUPS
from security import AuthError, decode_token
from tenant import tenant_for

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiError(Exception):
    """An error with an HTTP status, rendered as ``{"error": message}``."""

    def __init__(self, message: str, status: int = 400, errors: list[dict[str, str]] | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


def not_found(entity: str) -> ApiError:
    return ApiError(f"{entity} not found", 404)


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request."""

    user_id: int
    email: str
    role: str
    school_id: int | None = None
    education_system: str = "anglophone"

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "email": self.email, "role": self.role,
                "schoolId": self.school_id}


def current_principal() -> Principal:
    principal = g.get("principal")
    if principal is None:
        raise ApiError("Access denied. No token provided.", 401)
    return principal


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    parts = header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return None
    return parts[1].strip()


def authenticate() -> Principal:
    """Verify the bearer token and load the referenced, active user."""
    token = _bearer_token()
    if not token:
        raise ApiError("Access denied. No token provided.", 401)
    try:
        payload = decode_token(token)
    except AuthError as exc:
        raise ApiError(str(exc), 401) from exc

    row = query(
        "SELECT id, email, role, is_active, school_id, education_system FROM users WHERE id = ?",
        (payload["user_id"],),
    ).unwrap().first()
    if not row:
        raise ApiError("Invalid token. User not found.", 401)
    if not row["is_active"]:
        raise ApiError("Account is deactivated.", 401)

    principal = Principal(
        user_id=row["id"],
        email=row["email"],
        role=row["role"],
        school_id=row["school_id"],
        education_system=row["education_system"] or "anglophone",
    )
    g.principal = principal
    g.tenant = tenant_for(principal)
    return principal


def auth_required(f: Callable) -> Callable:
    """Decorator that requires a valid bearer token for an active user."""
    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        authenticate()
        return f(*args, **kwargs)
    return decorated


def roles_required(*roles: str) -> Callable[[Callable], Callable]:
    """Decorator factory: authenticate, then require the role to be in ``roles``.

    Each entry is a role name or a group name from roles.ROLE_GROUPS.
    """
    allowed: set[str] = set()
    for name in roles:
        allowed |= ROLE_GROUPS.get(name, {name})

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            principal = authenticate()
            if principal.role not in allowed:
                logger.info("Role %s denied on %s", principal.role, request.path)
                raise ApiError("Access denied. Insufficient permissions.", 403)
            return f(*args, **kwargs)
        return decorated
    return decorator


admin_only = roles_required("admin")
teacher_or_admin = roles_required("teacher_or_admin")
student_teacher_or_admin = roles_required("student_teacher_or_admin")


# ── Pagination ─────────────────────────────────────────────

def paginate_args(default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Extract page/limit from request.args. Returns (page, limit)."""
    try:
        page = max(1, int(request.args.get("page", 1)))
    except (ValueError, TypeError):
        page = 1
    try:
        limit = min(max_limit, max(1, int(request.args.get("limit", default_limit))))
    except (ValueError, TypeError):
        limit = default_limit
    return page, limit


def paginated_response(items: list, total: int, page: int, limit: int, key: str = "items") -> dict:
    """Standard pagination envelope."""
    pages = max(1, (total + limit - 1) // limit)
    return {
        key: items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "currentPage": page,
            "totalPages": pages,
            "hasNext": page < pages,
            "hasPrev": page > 1,
        },
    }


# ── Query-string and body parsing ──────────────────────────

def arg_int(name: str) -> int | None:
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        raise ApiError("Validation failed", 400, [{"field": name, "message": "must be an integer"}])


def arg_bool(name: str) -> bool | None:
    value = request.args.get(name)
    if value in (None, ""):
        return None
    return value.lower() in ("1", "true", "yes", "on")


def request_data() -> dict[str, Any]:
    """JSON body, or form fields for multipart requests."""
    if request.mimetype == "multipart/form-data" or request.mimetype == "application/x-www-form-urlencoded":
        return request.form.to_dict()
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object", 400)
    return data


def _field_name(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) if loc else "body"


def parse_body(model: type[ModelT], data: dict[str, Any] | None = None) -> ModelT:
    """Validate the request body against a pydantic model or raise a 400 ApiError."""
    payload = request_data() if data is None else data
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"field": _field_name(err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ApiError("Validation failed", 400, errors) from exc


def search_pattern(term: str | None) -> str | None:
    term = (term or "").strip()
    return f"%{term}%" if term else None
