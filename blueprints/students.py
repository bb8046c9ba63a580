"""Student profile routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from auth import create_account
from database import transaction
from db_stores import ClassStoreDB, GradeStoreDB, ParentStoreDB, StudentStoreDB, UserStoreDB
from helpers import (
    ApiError,
    admin_only,
    arg_int,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    teacher_or_admin,
)
from roles import Role, is_admin
from schemas import StudentCreate, StudentUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("students", __name__)

ACCOUNT_FIELDS = {"email", "password", "first_name", "last_name", "phone", "school_id", "user_id"}


def _load_student(student_pk: int) -> dict:
    student = StudentStoreDB.get(student_pk)
    if not student or not in_tenant(student["school_id"]):
        raise not_found("Student")
    return student


def require_student_view(student: dict) -> None:
    """Staff see any student in their school; students themselves; their parent."""
    principal = current_principal()
    if is_admin(principal.role) or principal.role == Role.TEACHER.value:
        return
    if principal.role == Role.STUDENT.value and student["user_id"] == principal.user_id:
        return
    if principal.role == Role.PARENT.value:
        parent = ParentStoreDB.get_by_user(principal.user_id)
        if parent and student["parent_id"] == parent["id"]:
            return
    raise ApiError("Access denied. Insufficient permissions.", 403)


def _check_links(fields: dict) -> None:
    if fields.get("class_id") is not None:
        cls = ClassStoreDB.get(fields["class_id"])
        if not cls or not in_tenant(cls["school_id"]):
            raise not_found("Class")
    if fields.get("parent_id") is not None:
        parent = ParentStoreDB.get(fields["parent_id"])
        if not parent or not in_tenant(parent["school_id"]):
            raise not_found("Parent")


@bp.route("/api/students")
@teacher_or_admin
def list_students():
    page, limit = paginate_args()
    students, total = StudentStoreDB.list(
        page, limit,
        grade_level=arg_int("gradeLevel"),
        class_id=arg_int("classId"),
        parent_id=arg_int("parentId"),
        search=request.args.get("search"),
    )
    return jsonify(paginated_response(students, total, page, limit, key="students"))


@bp.route("/api/students/<int:student_pk>")
@auth_required
def get_student(student_pk):
    student = _load_student(student_pk)
    require_student_view(student)
    return jsonify({"student": student})


@bp.route("/api/students/<int:student_pk>/grades")
@auth_required
def student_grades(student_pk):
    student = _load_student(student_pk)
    require_student_view(student)
    grades = GradeStoreDB.for_student(student_pk)
    return jsonify({"student": student, "grades": grades, "summary": GradeStoreDB.summary(grades)})


@bp.route("/api/students", methods=["POST"])
@admin_only
def create_student():
    principal = current_principal()
    body = parse_body(StudentCreate)
    fields = {k: v for k, v in body.model_dump().items() if k not in ACCOUNT_FIELDS}

    if body.student_id and StudentStoreDB.student_id_taken(body.student_id):
        raise ApiError("Student ID already exists", 400)
    _check_links(fields)

    school_id = principal.school_id if principal.role != Role.SUPER_ADMIN.value else body.school_id

    with transaction():
        if body.user_id is not None:
            user = UserStoreDB.get(body.user_id)
            if not user or not in_tenant(user["school_id"]):
                raise ApiError("User not found", 404)
            if user["role"] != Role.STUDENT.value:
                raise ApiError("User must have student role", 400)
            if StudentStoreDB.get_by_user(body.user_id):
                raise ApiError("Student profile already exists for this user", 400)
            student_pk = StudentStoreDB.create(body.user_id, school_id or user["school_id"], fields)
        else:
            _, student_pk = create_account(
                email=body.email,
                password=body.password,
                first_name=body.first_name,
                last_name=body.last_name,
                role=Role.STUDENT.value,
                phone=body.phone,
                school_id=school_id,
                profile=fields,
            )

    logger.info("Student %d created by %d", student_pk, principal.user_id)
    return jsonify({"message": "Student created successfully",
                    "student": StudentStoreDB.get(student_pk)}), 201


@bp.route("/api/students/<int:student_pk>", methods=["PUT"])
@admin_only
def update_student(student_pk):
    _load_student(student_pk)
    changes = parse_body(StudentUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    if changes.get("student_id") and StudentStoreDB.student_id_taken(changes["student_id"], student_pk):
        raise ApiError("Student ID already exists", 400)
    _check_links(changes)

    StudentStoreDB.update(student_pk, changes)
    return jsonify({"message": "Student updated successfully",
                    "student": StudentStoreDB.get(student_pk)})


@bp.route("/api/students/<int:student_pk>", methods=["DELETE"])
@admin_only
def delete_student(student_pk):
    _load_student(student_pk)
    StudentStoreDB.delete(student_pk)
    logger.info("Student %d deleted by %d", student_pk, current_principal().user_id)
    return jsonify({"message": "Student deleted successfully"})
