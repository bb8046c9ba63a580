"""Role-specific dashboard summary for the SPA landing view."""

from __future__ import annotations

from flask import Blueprint, jsonify

from db_stores import (
    DashboardStoreDB,
    GradeStoreDB,
    LessonPlanStoreDB,
    NotificationStoreDB,
    ParentStoreDB,
    QuizStoreDB,
    StudentStoreDB,
    TeacherStoreDB,
)
from helpers import auth_required, current_principal
from roles import Role, is_admin

bp = Blueprint("dashboard", __name__)


def _teacher_summary(user_id: int) -> dict:
    teacher = TeacherStoreDB.get_by_user(user_id)
    if teacher is None:
        return {"classes": [], "lesson_plans": None, "quizzes": 0}
    _, quiz_count = QuizStoreDB.list(1, 1, created_by=user_id)
    return {
        "teacher_id": teacher["id"],
        "classes": TeacherStoreDB.classes(teacher["id"]),
        "lesson_plans": LessonPlanStoreDB.stats(teacher["id"]),
        "quizzes": quiz_count,
    }


def _student_summary(user_id: int) -> dict:
    student = StudentStoreDB.get_by_user(user_id)
    if student is None:
        return {"grades": [], "grade_summary": GradeStoreDB.summary([]), "active_quizzes": 0}
    grades = GradeStoreDB.for_student(student["id"])
    _, active = QuizStoreDB.list(1, 1, class_id=student["class_id"], status="active") \
        if student["class_id"] else ([], 0)
    return {
        "student_id": student["id"],
        "grades": grades[:5],
        "grade_summary": GradeStoreDB.summary(grades),
        "active_quizzes": active,
    }


def _parent_summary(user_id: int) -> dict:
    parent = ParentStoreDB.get_by_user(user_id)
    children = ParentStoreDB.children(parent["id"]) if parent else []
    for child in children:
        child["grade_summary"] = GradeStoreDB.summary(GradeStoreDB.for_student(child["id"]))
    return {"children": children}


@bp.route("/api/dashboard")
@auth_required
def dashboard():
    principal = current_principal()
    if is_admin(principal.role):
        summary = {"counts": DashboardStoreDB.counts()}
    elif principal.role == Role.TEACHER.value:
        summary = _teacher_summary(principal.user_id)
    elif principal.role == Role.STUDENT.value:
        summary = _student_summary(principal.user_id)
    else:
        summary = _parent_summary(principal.user_id)

    return jsonify({
        "role": principal.role,
        "summary": summary,
        "unreadNotifications": NotificationStoreDB(principal.user_id).unread_count(),
    })
