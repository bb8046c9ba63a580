"""Class (course section) routes and class-level naming."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from class_mapping import EDUCATION_SYSTEMS, get_class_names
from db_stores import ClassStoreDB, SubjectStoreDB, TeacherStoreDB
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
from roles import Role
from schemas import ClassCreate, ClassUpdate
from tenant import current_tenant, in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("classes", __name__)


def _load_class(class_id: int) -> dict:
    cls = ClassStoreDB.get(class_id)
    if not cls or not in_tenant(cls["school_id"]):
        raise not_found("Class")
    return cls


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def _own_teacher_id() -> int | None:
    row = TeacherStoreDB.get_by_user(current_principal().user_id)
    return row["id"] if row else None


def _check_subject(subject_id: int) -> dict:
    subject = SubjectStoreDB.get(subject_id)
    if not subject or not in_tenant(subject["school_id"]):
        raise ApiError("Subject not found", 404)
    return subject


def _check_teacher(teacher_id: int) -> dict:
    teacher = TeacherStoreDB.get(teacher_id)
    if not teacher or not in_tenant(teacher["school_id"]):
        raise ApiError("Teacher not found", 404)
    return teacher


@bp.route("/api/classes/names")
def class_names():
    system = request.args.get("educationSystem")
    if not system:
        tenant = current_tenant()
        system = tenant.education_system if tenant else "anglophone"
    if system not in EDUCATION_SYSTEMS:
        raise ApiError("Validation failed", 400,
                       [{"field": "educationSystem", "message": "must be anglophone or francophone"}])
    return jsonify({"educationSystem": system, "classNames": get_class_names(system)})


@bp.route("/api/classes")
@auth_required
def list_classes():
    page, limit = paginate_args()
    classes, total = ClassStoreDB.list(
        page, limit,
        semester=request.args.get("semester") or None,
        academic_year=request.args.get("academicYear") or None,
        subject_id=arg_int("subjectId"),
        teacher_id=arg_int("teacherId"),
        search=request.args.get("search"),
    )
    return jsonify(paginated_response(classes, total, page, limit, key="classes"))


@bp.route("/api/classes/<int:class_id>")
@auth_required
def get_class(class_id):
    return jsonify({"class": _load_class(class_id)})


@bp.route("/api/classes/<int:class_id>/students")
@teacher_or_admin
def class_students(class_id):
    cls = _load_class(class_id)
    return jsonify({"class": cls, "students": ClassStoreDB.students(class_id)})


@bp.route("/api/classes", methods=["POST"])
@teacher_or_admin
def create_class():
    principal = current_principal()
    body = parse_body(ClassCreate)
    subject = _check_subject(body.subject_id)

    if principal.role == Role.TEACHER.value:
        teacher_id = _own_teacher_id()
        if teacher_id is None:
            raise ApiError("Teacher profile not found", 403)
        if body.teacher_id is not None and body.teacher_id != teacher_id:
            raise ApiError("Access denied. Insufficient permissions.", 403)
    else:
        teacher_id = body.teacher_id
        if teacher_id is not None:
            _check_teacher(teacher_id)

    if principal.role == Role.SUPER_ADMIN.value:
        school_id = body.school_id or subject["school_id"]
    else:
        school_id = principal.school_id

    fields = body.model_dump(exclude={"teacher_id", "school_id"})
    class_id = ClassStoreDB.create({**fields, "teacher_id": teacher_id, "school_id": school_id})
    logger.info("Class %d created by %d", class_id, principal.user_id)
    return jsonify({"message": "Class created successfully", "class": ClassStoreDB.get(class_id)}), 201


@bp.route("/api/classes/<int:class_id>", methods=["PUT"])
@teacher_or_admin
def update_class(class_id):
    principal = current_principal()
    cls = _load_class(class_id)
    if principal.role == Role.TEACHER.value and cls["teacher_id"] != _own_teacher_id():
        raise ApiError("Access denied. You can only update your own classes.", 403)

    changes = parse_body(ClassUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    if changes.get("subject_id") is not None:
        _check_subject(changes["subject_id"])
    if "teacher_id" in changes:
        if principal.role == Role.TEACHER.value:
            raise ApiError("Access denied. Insufficient permissions.", 403)
        if changes["teacher_id"] is not None:
            _check_teacher(changes["teacher_id"])

    start = changes.get("start_time", cls["start_time"])
    end = changes.get("end_time", cls["end_time"])
    if start and end and _minutes(end) <= _minutes(start):
        raise ApiError("Validation failed", 400,
                       [{"field": "endTime", "message": "endTime must be after startTime"}])

    ClassStoreDB.update(class_id, changes)
    return jsonify({"message": "Class updated successfully", "class": ClassStoreDB.get(class_id)})


@bp.route("/api/classes/<int:class_id>", methods=["DELETE"])
@admin_only
def delete_class(class_id):
    _load_class(class_id)
    ClassStoreDB.delete(class_id)
    logger.info("Class %d deleted by %d", class_id, current_principal().user_id)
    return jsonify({"message": "Class deleted successfully"})
