"""Teacher profile routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from auth import create_account
from database import transaction
from db_stores import TeacherStoreDB, UserStoreDB
from helpers import (
    ApiError,
    admin_only,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
)
from roles import Role
from schemas import TeacherCreate, TeacherUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("teachers", __name__)

ACCOUNT_FIELDS = {"email", "password", "first_name", "last_name", "phone", "school_id", "user_id"}


def _load_teacher(teacher_id: int) -> dict:
    teacher = TeacherStoreDB.get(teacher_id)
    if not teacher or not in_tenant(teacher["school_id"]):
        raise not_found("Teacher")
    return teacher


@bp.route("/api/teachers")
@auth_required
def list_teachers():
    page, limit = paginate_args()
    teachers, total = TeacherStoreDB.list(
        page, limit,
        department=request.args.get("department") or None,
        search=request.args.get("search"),
    )
    return jsonify(paginated_response(teachers, total, page, limit, key="teachers"))


@bp.route("/api/teachers/<int:teacher_id>")
@auth_required
def get_teacher(teacher_id):
    return jsonify({"teacher": _load_teacher(teacher_id)})


@bp.route("/api/teachers/<int:teacher_id>/classes")
@auth_required
def teacher_classes(teacher_id):
    teacher = _load_teacher(teacher_id)
    return jsonify({"teacher": teacher, "classes": TeacherStoreDB.classes(teacher_id)})


@bp.route("/api/teachers", methods=["POST"])
@admin_only
def create_teacher():
    principal = current_principal()
    body = parse_body(TeacherCreate)
    fields = {k: v for k, v in body.model_dump().items() if k not in ACCOUNT_FIELDS}

    if body.employee_id and TeacherStoreDB.employee_id_taken(body.employee_id):
        raise ApiError("Employee ID already exists", 400)

    school_id = principal.school_id if principal.role != Role.SUPER_ADMIN.value else body.school_id

    with transaction():
        if body.user_id is not None:
            user = UserStoreDB.get(body.user_id)
            if not user or not in_tenant(user["school_id"]):
                raise ApiError("User not found", 404)
            if user["role"] != Role.TEACHER.value:
                raise ApiError("User must have teacher role", 400)
            if TeacherStoreDB.get_by_user(body.user_id):
                raise ApiError("Teacher profile already exists for this user", 400)
            teacher_id = TeacherStoreDB.create(body.user_id, school_id or user["school_id"], fields)
        else:
            _, teacher_id = create_account(
                email=body.email,
                password=body.password,
                first_name=body.first_name,
                last_name=body.last_name,
                role=Role.TEACHER.value,
                phone=body.phone,
                school_id=school_id,
                profile=fields,
            )

    logger.info("Teacher %d created by %d", teacher_id, principal.user_id)
    return jsonify({"message": "Teacher created successfully",
                    "teacher": TeacherStoreDB.get(teacher_id)}), 201


@bp.route("/api/teachers/<int:teacher_id>", methods=["PUT"])
@admin_only
def update_teacher(teacher_id):
    _load_teacher(teacher_id)
    changes = parse_body(TeacherUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    if changes.get("employee_id") and TeacherStoreDB.employee_id_taken(changes["employee_id"], teacher_id):
        raise ApiError("Employee ID already exists", 400)

    TeacherStoreDB.update(teacher_id, changes)
    return jsonify({"message": "Teacher updated successfully",
                    "teacher": TeacherStoreDB.get(teacher_id)})


@bp.route("/api/teachers/<int:teacher_id>", methods=["DELETE"])
@admin_only
def delete_teacher(teacher_id):
    _load_teacher(teacher_id)
    TeacherStoreDB.delete(teacher_id)
    logger.info("Teacher %d deleted by %d", teacher_id, current_principal().user_id)
    return jsonify({"message": "Teacher deleted successfully"})
