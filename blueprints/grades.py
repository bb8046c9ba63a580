"""Gradebook routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from blueprints.students import require_student_view
from db_stores import ClassStoreDB, GradeStoreDB, StudentStoreDB, TeacherStoreDB
from grading import compute_grade
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
from roles import Role
from schemas import GradeCreate, GradeUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("grades", __name__)


def _present(grade: dict | None) -> dict | None:
    """Expose the computed fields under their camelCase names as well."""
    if grade is None:
        return None
    return {**grade, "gradePercentage": grade["grade_percentage"], "letterGrade": grade["letter_grade"]}


def _load_class(class_id: int) -> dict:
    cls = ClassStoreDB.get(class_id)
    if not cls or not in_tenant(cls["school_id"]):
        raise not_found("Class")
    return cls


def _load_grade(grade_id: int) -> dict:
    grade = GradeStoreDB.get(grade_id)
    if not grade:
        raise not_found("Grade")
    _load_class(grade["class_id"])
    return grade


def _caller_teacher_id() -> int | None:
    """The caller's teacher row; teachers may only grade classes they teach."""
    principal = current_principal()
    row = TeacherStoreDB.get_by_user(principal.user_id)
    if principal.role == Role.TEACHER.value and row is None:
        raise ApiError("Teacher profile not found", 403)
    return row["id"] if row else None


def _require_teaches(cls: dict, teacher_id: int | None) -> None:
    if current_principal().role == Role.TEACHER.value and cls["teacher_id"] != teacher_id:
        raise ApiError("Access denied. You can only grade students in your classes.", 403)


@bp.route("/api/grades")
@teacher_or_admin
def list_grades():
    page, limit = paginate_args()
    grades, total = GradeStoreDB.list(
        page, limit,
        student_id=arg_int("studentId"),
        class_id=arg_int("classId"),
        search=request.args.get("search"),
    )
    return jsonify(paginated_response([_present(g) for g in grades], total, page, limit, key="grades"))


@bp.route("/api/grades/student/<int:student_pk>")
@auth_required
def grades_for_student(student_pk):
    student = StudentStoreDB.get(student_pk)
    if not student or not in_tenant(student["school_id"]):
        raise not_found("Student")
    require_student_view(student)
    grades = GradeStoreDB.for_student(student_pk)
    return jsonify({"grades": [_present(g) for g in grades], "summary": GradeStoreDB.summary(grades)})


@bp.route("/api/grades/class/<int:class_id>")
@teacher_or_admin
def grades_for_class(class_id):
    cls = _load_class(class_id)
    grades = GradeStoreDB.for_class(class_id)
    return jsonify({"class": cls, "grades": [_present(g) for g in grades],
                    "summary": GradeStoreDB.summary(grades)})


@bp.route("/api/grades/<int:grade_id>")
@auth_required
def get_grade(grade_id):
    grade = _load_grade(grade_id)
    require_student_view(StudentStoreDB.get(grade["student_id"]))
    return jsonify({"grade": _present(grade)})


@bp.route("/api/grades", methods=["POST"])
@teacher_or_admin
def create_grade():
    body = parse_body(GradeCreate)

    student = StudentStoreDB.get(body.student_id)
    if not student or not in_tenant(student["school_id"]):
        raise not_found("Student")
    cls = _load_class(body.class_id)
    teacher_id = _caller_teacher_id()
    _require_teaches(cls, teacher_id)

    percentage, letter = compute_grade(body.points_earned, body.points_possible)
    grade_id = GradeStoreDB.create({
        **body.model_dump(),
        "grade_percentage": percentage,
        "letter_grade": letter,
        "graded_by": teacher_id,
    })
    logger.info("Grade %d recorded for student %d (%.2f%%)", grade_id, body.student_id, percentage)
    return jsonify({"message": "Grade created successfully",
                    "grade": _present(GradeStoreDB.get(grade_id))}), 201


@bp.route("/api/grades/<int:grade_id>", methods=["PUT"])
@teacher_or_admin
def update_grade(grade_id):
    grade = _load_grade(grade_id)
    _require_teaches(_load_class(grade["class_id"]), _caller_teacher_id())

    changes = parse_body(GradeUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)

    earned = changes.get("points_earned", grade["points_earned"])
    possible = changes.get("points_possible", grade["points_possible"])
    if earned is None or possible is None or earned > possible:
        raise ApiError("Validation failed", 400,
                       [{"field": "pointsEarned", "message": "pointsEarned cannot exceed pointsPossible"}])
    if "points_earned" in changes or "points_possible" in changes:
        changes["grade_percentage"], changes["letter_grade"] = compute_grade(earned, possible)

    GradeStoreDB.update(grade_id, changes)
    return jsonify({"message": "Grade updated successfully",
                    "grade": _present(GradeStoreDB.get(grade_id))})


@bp.route("/api/grades/<int:grade_id>", methods=["DELETE"])
@teacher_or_admin
def delete_grade(grade_id):
    grade = _load_grade(grade_id)
    _require_teaches(_load_class(grade["class_id"]), _caller_teacher_id())
    GradeStoreDB.delete(grade_id)
    return jsonify({"message": "Grade deleted successfully"})
