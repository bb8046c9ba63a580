"""Lesson plan routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from db_stores import ClassStoreDB, LessonPlanStoreDB, SubjectStoreDB, TeacherStoreDB
from helpers import (
    ApiError,
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
from schemas import LessonPlanCreate, LessonPlanUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("lesson_plans", __name__)


def _is_staff() -> bool:
    role = current_principal().role
    return is_admin(role) or role == Role.TEACHER.value


def _load_plan(plan_id: int) -> dict:
    plan = LessonPlanStoreDB.get(plan_id)
    if not plan or not in_tenant(plan["school_id"]):
        raise not_found("Lesson plan")
    if not _is_staff() and plan["status"] != "published":
        raise not_found("Lesson plan")
    return plan


def _own_teacher() -> dict | None:
    return TeacherStoreDB.get_by_user(current_principal().user_id)


def _require_owner(plan: dict) -> None:
    principal = current_principal()
    if is_admin(principal.role):
        return
    teacher = _own_teacher()
    if teacher is None or plan["teacher_id"] != teacher["id"]:
        raise ApiError("Access denied. You can only modify your own lesson plans.", 403)


def _check_refs(fields: dict) -> None:
    if fields.get("subject_id") is not None:
        subject = SubjectStoreDB.get(fields["subject_id"])
        if not subject or not in_tenant(subject["school_id"]):
            raise ApiError("Subject not found", 404)
    if fields.get("class_id") is not None:
        cls = ClassStoreDB.get(fields["class_id"])
        if not cls or not in_tenant(cls["school_id"]):
            raise ApiError("Class not found", 404)


def _list(**filters):
    page, limit = paginate_args()
    status = request.args.get("status") or None
    if not _is_staff():
        status = "published"
    plans, total = LessonPlanStoreDB.list(page, limit, status=status,
                                          search=request.args.get("search"), **filters)
    return jsonify(paginated_response(plans, total, page, limit, key="lessonPlans"))


@bp.route("/api/lesson-plans")
@auth_required
def list_lesson_plans():
    return _list(subject_id=arg_int("subjectId"), class_id=arg_int("classId"),
                 teacher_id=arg_int("teacherId"))


@bp.route("/api/lesson-plans/teacher/<int:teacher_id>")
@auth_required
def lesson_plans_for_teacher(teacher_id):
    teacher = TeacherStoreDB.get(teacher_id)
    if not teacher or not in_tenant(teacher["school_id"]):
        raise not_found("Teacher")
    return _list(teacher_id=teacher_id, subject_id=arg_int("subjectId"))


@bp.route("/api/lesson-plans/class/<int:class_id>")
@auth_required
def lesson_plans_for_class(class_id):
    cls = ClassStoreDB.get(class_id)
    if not cls or not in_tenant(cls["school_id"]):
        raise not_found("Class")
    return _list(class_id=class_id)


@bp.route("/api/lesson-plans/stats/overview")
@teacher_or_admin
def lesson_plan_stats():
    teacher_id = None
    if current_principal().role == Role.TEACHER.value:
        teacher = _own_teacher()
        if teacher is None:
            raise ApiError("Teacher profile not found", 403)
        teacher_id = teacher["id"]
    return jsonify({"stats": LessonPlanStoreDB.stats(teacher_id)})


@bp.route("/api/lesson-plans/<int:plan_id>")
@auth_required
def get_lesson_plan(plan_id):
    return jsonify({"lessonPlan": _load_plan(plan_id)})


@bp.route("/api/lesson-plans", methods=["POST"])
@teacher_or_admin
def create_lesson_plan():
    principal = current_principal()
    body = parse_body(LessonPlanCreate)

    if principal.role == Role.TEACHER.value:
        teacher = _own_teacher()
        if teacher is None:
            raise ApiError("Teacher profile not found", 403)
    else:
        if body.teacher_id is None:
            raise ApiError("Validation failed", 400,
                           [{"field": "teacherId", "message": "teacherId is required"}])
        teacher = TeacherStoreDB.get(body.teacher_id)
        if not teacher or not in_tenant(teacher["school_id"]):
            raise ApiError("Teacher not found", 404)

    fields = body.model_dump(exclude={"teacher_id"})
    _check_refs(fields)

    plan_id = LessonPlanStoreDB.create({
        **fields,
        "teacher_id": teacher["id"],
        "school_id": teacher["school_id"] if teacher["school_id"] is not None else principal.school_id,
    })
    logger.info("Lesson plan %d created by %d", plan_id, principal.user_id)
    return jsonify({"message": "Lesson plan created successfully",
                    "lessonPlan": LessonPlanStoreDB.get(plan_id)}), 201


@bp.route("/api/lesson-plans/<int:plan_id>", methods=["PUT"])
@teacher_or_admin
def update_lesson_plan(plan_id):
    plan = _load_plan(plan_id)
    _require_owner(plan)
    changes = parse_body(LessonPlanUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    _check_refs(changes)

    LessonPlanStoreDB.update(plan_id, changes)
    return jsonify({"message": "Lesson plan updated successfully",
                    "lessonPlan": LessonPlanStoreDB.get(plan_id)})


@bp.route("/api/lesson-plans/<int:plan_id>", methods=["DELETE"])
@teacher_or_admin
def delete_lesson_plan(plan_id):
    plan = _load_plan(plan_id)
    _require_owner(plan)
    LessonPlanStoreDB.delete(plan_id)
    return jsonify({"message": "Lesson plan deleted successfully"})
