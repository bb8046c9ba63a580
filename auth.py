"""
User Authentication: JSON API blueprint.

Provides register, login, current-user and password routes. Passwords use
werkzeug.security; sessions are stateless bearer tokens (see security.py).
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, jsonify

from database import transaction
from db_stores import ParentStoreDB, SchoolStoreDB, StudentStoreDB, TeacherStoreDB, UserStoreDB
from extensions import limiter
from helpers import ApiError, auth_required, current_principal, parse_body
from roles import Role
from schemas import ChangePasswordRequest, LoginRequest, ProfileUpdate, RegisterRequest
from security import create_token, hash_password, verify_password

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def create_account(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str,
    phone: str = "",
    school_id: int | None = None,
    education_system: str = "anglophone",
    language: str = "en",
    profile: dict[str, Any] | None = None,
) -> tuple[int, int | None]:
    """Insert a user and, for teachers, students and parents, its profile row.

    Returns (user_id, profile_id). Callers run this inside transaction().
    """
    if UserStoreDB.email_exists(email):
        raise ApiError("User with this email already exists", 400)

    user_id = UserStoreDB.create(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        phone=phone,
        school_id=school_id,
        education_system=education_system,
        language=language,
    )
    profile = profile or {}
    profile_id = None
    if role == Role.TEACHER.value:
        profile_id = TeacherStoreDB.create(user_id, school_id, profile)
    elif role == Role.STUDENT.value:
        profile_id = StudentStoreDB.create(user_id, school_id, profile)
    elif role == Role.PARENT.value:
        profile_id = ParentStoreDB.create(user_id, school_id, profile)
    return user_id, profile_id


def profile_refs(user: dict[str, Any]) -> dict[str, Any]:
    """Attach the id of the role-specific profile row to a user payload."""
    user = dict(user)
    role = user.get("role")
    lookup = {
        Role.TEACHER.value: ("teacher_id", TeacherStoreDB.get_by_user),
        Role.STUDENT.value: ("student_profile_id", StudentStoreDB.get_by_user),
        Role.PARENT.value: ("parent_id", ParentStoreDB.get_by_user),
    }
    if role in lookup:
        key, getter = lookup[role]
        row = getter(user["id"])
        user[key] = row["id"] if row else None
    return user


@auth_bp.route("/api/auth/register", methods=["POST"])
@limiter.limit("20 per hour", methods=["POST"])
def register():
    body = parse_body(RegisterRequest)

    if body.school_id is not None and not SchoolStoreDB.exists(body.school_id):
        raise ApiError("School not found", 404)

    profile: dict[str, Any] = {}
    if body.role == Role.TEACHER.value:
        profile = {"department": body.department}
    elif body.role == Role.STUDENT.value:
        profile = {"grade_level": body.grade_level}
    elif body.role == Role.PARENT.value:
        profile = {"parent_type": body.parent_type or "guardian"}

    if UserStoreDB.email_exists(body.email):
        raise ApiError("User already exists with this email", 400)

    with transaction():
        user_id, _ = create_account(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role=body.role,
            phone=body.phone,
            school_id=body.school_id,
            education_system=body.system,
            language=body.language,
            profile=profile,
        )

    user = profile_refs(UserStoreDB.get(user_id))
    logger.info("Registered %s account %d", body.role, user_id)
    return jsonify({
        "message": "User registered successfully",
        "token": create_token(user_id, user["email"], user["role"]),
        "user": user,
    }), 201


@auth_bp.route("/api/auth/login", methods=["POST"])
@limiter.limit("10 per minute", methods=["POST"])
def login():
    body = parse_body(LoginRequest)

    row = UserStoreDB.get_credentials(body.email)
    if not row or not verify_password(body.password, row["password_hash"]):
        logger.info("Failed login for %s", body.email)
        raise ApiError("Invalid credentials", 401)
    if not row["is_active"]:
        raise ApiError("Account is deactivated.", 401)

    UserStoreDB.touch_login(row["id"])
    user = profile_refs(UserStoreDB.get(row["id"]))
    return jsonify({
        "message": "Login successful",
        "token": create_token(row["id"], row["email"], row["role"]),
        "user": user,
    })


@auth_bp.route("/api/auth/me")
@auth_required
def me():
    principal = current_principal()
    user = UserStoreDB.get(principal.user_id)
    return jsonify({"user": profile_refs(user)})


@auth_bp.route("/api/auth/profile", methods=["PUT"])
@auth_required
def update_profile():
    principal = current_principal()
    changes = parse_body(ProfileUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    UserStoreDB.update(principal.user_id, changes)
    return jsonify({
        "message": "Profile updated successfully",
        "user": profile_refs(UserStoreDB.get(principal.user_id)),
    })


@auth_bp.route("/api/auth/change-password", methods=["PUT"])
@auth_required
def change_password():
    principal = current_principal()
    body = parse_body(ChangePasswordRequest)
    if not verify_password(body.current_password, UserStoreDB.password_hash(principal.user_id) or ""):
        raise ApiError("Current password is incorrect", 400)
    UserStoreDB.set_password(principal.user_id, hash_password(body.new_password))
    logger.info("Password changed for user %d", principal.user_id)
    return jsonify({"message": "Password changed successfully"})
