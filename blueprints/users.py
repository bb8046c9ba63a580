"""User account administration routes (admins only)."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from auth import create_account, profile_refs
from database import transaction
from db_stores import SchoolStoreDB, UserStoreDB
from helpers import (
    ApiError,
    admin_only,
    arg_bool,
    arg_int,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
)
from roles import Role, can_manage_role
from schemas import UserCreate, UserUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)


def _load_user(user_id: int) -> dict:
    user = UserStoreDB.get(user_id)
    if not user or not in_tenant(user["school_id"]):
        raise not_found("User")
    return user


@bp.route("/api/users")
@admin_only
def list_users():
    page, limit = paginate_args()
    users, total = UserStoreDB.list(
        page, limit,
        role=request.args.get("role") or None,
        search=request.args.get("search"),
        is_active=arg_bool("isActive"),
        school_id=arg_int("schoolId"),
    )
    return jsonify(paginated_response(users, total, page, limit, key="users"))


@bp.route("/api/users/<int:user_id>")
@admin_only
def get_user(user_id):
    return jsonify({"user": profile_refs(_load_user(user_id))})


@bp.route("/api/users", methods=["POST"])
@admin_only
def create_user():
    principal = current_principal()
    body = parse_body(UserCreate)

    if not can_manage_role(principal.role, body.role):
        raise ApiError("Access denied. Insufficient permissions.", 403)

    school_id = body.school_id
    if principal.role != Role.SUPER_ADMIN.value:
        school_id = principal.school_id
    if school_id is not None and not SchoolStoreDB.exists(school_id):
        raise not_found("School")

    with transaction():
        user_id, _ = create_account(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role=body.role,
            phone=body.phone,
            school_id=school_id,
            education_system=body.education_system,
        )
    logger.info("User %d created by %d", user_id, principal.user_id)
    return jsonify({"message": "User created successfully",
                    "user": profile_refs(UserStoreDB.get(user_id))}), 201


@bp.route("/api/users/<int:user_id>", methods=["PUT"])
@admin_only
def update_user(user_id):
    principal = current_principal()
    user = _load_user(user_id)
    changes = parse_body(UserUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)

    if not can_manage_role(principal.role, user["role"]):
        raise ApiError("Access denied. Insufficient permissions.", 403)
    if "role" in changes and not can_manage_role(principal.role, changes["role"]):
        raise ApiError("Access denied. Insufficient permissions.", 403)
    if "school_id" in changes:
        if principal.role != Role.SUPER_ADMIN.value:
            raise ApiError("Access denied. Insufficient permissions.", 403)
        if changes["school_id"] is not None and not SchoolStoreDB.exists(changes["school_id"]):
            raise not_found("School")
    if changes.get("is_active") is False and user_id == principal.user_id:
        raise ApiError("You cannot deactivate your own account", 400)

    UserStoreDB.update(user_id, changes)
    return jsonify({"message": "User updated successfully", "user": UserStoreDB.get(user_id)})


def _set_active(user_id: int, active: bool):
    principal = current_principal()
    user = _load_user(user_id)
    if not active and user_id == principal.user_id:
        raise ApiError("You cannot deactivate your own account", 400)
    if not can_manage_role(principal.role, user["role"]):
        raise ApiError("Access denied. Insufficient permissions.", 403)
    UserStoreDB.set_active(user_id, active)
    logger.info("User %d %s by %d", user_id, "activated" if active else "deactivated",
                principal.user_id)
    state = "activated" if active else "deactivated"
    return jsonify({"message": f"User {state} successfully", "user": UserStoreDB.get(user_id)})


@bp.route("/api/users/<int:user_id>/deactivate", methods=["PUT"])
@admin_only
def deactivate_user(user_id):
    return _set_active(user_id, False)


@bp.route("/api/users/<int:user_id>/activate", methods=["PUT"])
@admin_only
def activate_user(user_id):
    return _set_active(user_id, True)


@bp.route("/api/users/<int:user_id>", methods=["DELETE"])
@admin_only
def delete_user(user_id):
    """Accounts are soft-deleted: the row stays, login is refused."""
    return _set_active(user_id, False)
