"""Quiz authoring, submission and marking routes."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from flask import Blueprint, jsonify, request

from database import DatabaseError, transaction
from db_stores import ClassStoreDB, QuizStoreDB, StudentStoreDB
from grading import score_submission
from helpers import (
    ApiError,
    arg_int,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    roles_required,
    teacher_or_admin,
)
from roles import Role, is_admin
from schemas import QuestionIn, QuizCreate, QuizSubmit, QuizUpdate, SubmissionGrade
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("quizzes", __name__)

student_only = roles_required(Role.STUDENT.value)


def _is_staff() -> bool:
    """Teachers and admins see drafts and correct answers."""
    role = current_principal().role
    return is_admin(role) or role == Role.TEACHER.value


def _load_quiz(quiz_id: int) -> dict:
    quiz = QuizStoreDB.get(quiz_id)
    if not quiz or not in_tenant(quiz["school_id"]):
        raise not_found("Quiz")
    if not _is_staff() and quiz["status"] != "active":
        raise not_found("Quiz")
    return quiz


def _require_owner(quiz: dict) -> None:
    principal = current_principal()
    if not is_admin(principal.role) and quiz["created_by"] != principal.user_id:
        raise ApiError("Access denied. You can only modify your own quizzes.", 403)


def _parse_moment(value: str | None) -> datetime | None:
    if not value:
        return None
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


def _is_open(quiz: dict, now: datetime | None = None) -> bool:
    """Active and, when a window is set, between its start and end."""
    if quiz["status"] != "active":
        return False
    now = now or datetime.now()
    start = _parse_moment(quiz["start_date"])
    end = _parse_moment(quiz["end_date"])
    if start and now < start:
        return False
    if end and now > end:
        return False
    return True


def _answer_map(answers: dict[str, Any] | list[Any], questions: list[dict]) -> dict[str, Any]:
    """Normalise submitted answers to {question id (str): answer}.

    Accepts a mapping keyed by question id, a list of
    ``{"questionId": .., "answer": ..}`` objects, or a plain list in
    question order.
    """
    if isinstance(answers, dict):
        return {str(k): v for k, v in answers.items()}
    mapped: dict[str, Any] = {}
    for index, item in enumerate(answers):
        if isinstance(item, dict):
            qid = item.get("questionId", item.get("question_id"))
            if qid is not None:
                mapped[str(qid)] = item.get("answer")
        elif index < len(questions):
            mapped[str(questions[index]["id"])] = item
    return mapped


@bp.route("/api/quizzes")
@auth_required
def list_quizzes():
    page, limit = paginate_args()
    status = request.args.get("status") or None
    if not _is_staff():
        status = "active"
    quizzes, total = QuizStoreDB.list(
        page, limit,
        class_id=arg_int("classId"),
        subject_id=arg_int("subjectId"),
        status=status,
        search=request.args.get("search"),
    )
    return jsonify(paginated_response(quizzes, total, page, limit, key="quizzes"))


@bp.route("/api/quizzes/<int:quiz_id>")
@auth_required
def get_quiz(quiz_id):
    quiz = _load_quiz(quiz_id)
    questions = QuizStoreDB.questions(quiz_id, include_answers=_is_staff())
    return jsonify({"quiz": {**quiz, "questions": questions}})


@bp.route("/api/quizzes", methods=["POST"])
@teacher_or_admin
def create_quiz():
    principal = current_principal()
    body = parse_body(QuizCreate)
    cls = ClassStoreDB.get(body.class_id)
    if not cls or not in_tenant(cls["school_id"]):
        raise not_found("Class")

    fields = body.model_dump(exclude={"questions"})
    fields["subject_id"] = body.subject_id or cls["subject_id"]
    fields["school_id"] = cls["school_id"]
    fields["created_by"] = principal.user_id

    with transaction():
        quiz_id = QuizStoreDB.create(fields)
        for order, question in enumerate(body.questions, start=1):
            QuizStoreDB.add_question(quiz_id, question.model_dump(exclude={"question_order"}),
                                     question.question_order or order)
        QuizStoreDB.refresh_total(quiz_id)

    logger.info("Quiz %d created with %d questions by %d", quiz_id, len(body.questions),
                principal.user_id)
    quiz = QuizStoreDB.get(quiz_id)
    return jsonify({"message": "Quiz created successfully",
                    "quiz": {**quiz, "questions": QuizStoreDB.questions(quiz_id)}}), 201


@bp.route("/api/quizzes/<int:quiz_id>", methods=["PUT"])
@teacher_or_admin
def update_quiz(quiz_id):
    quiz = _load_quiz(quiz_id)
    _require_owner(quiz)
    changes = parse_body(QuizUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)

    start = changes.get("start_date") or _parse_moment(quiz["start_date"])
    end = changes.get("end_date") or _parse_moment(quiz["end_date"])
    if start and end and end <= start:
        raise ApiError("Validation failed", 400,
                       [{"field": "endDate", "message": "endDate must be after startDate"}])

    QuizStoreDB.update(quiz_id, changes)
    return jsonify({"message": "Quiz updated successfully", "quiz": QuizStoreDB.get(quiz_id)})


@bp.route("/api/quizzes/<int:quiz_id>", methods=["DELETE"])
@teacher_or_admin
def delete_quiz(quiz_id):
    quiz = _load_quiz(quiz_id)
    _require_owner(quiz)
    QuizStoreDB.delete(quiz_id)
    logger.info("Quiz %d deleted by %d", quiz_id, current_principal().user_id)
    return jsonify({"message": "Quiz deleted successfully"})


@bp.route("/api/quizzes/<int:quiz_id>/questions")
@auth_required
def list_questions(quiz_id):
    _load_quiz(quiz_id)
    return jsonify({"questions": QuizStoreDB.questions(quiz_id, include_answers=_is_staff())})


@bp.route("/api/quizzes/<int:quiz_id>/questions", methods=["POST"])
@teacher_or_admin
def add_question(quiz_id):
    quiz = _load_quiz(quiz_id)
    _require_owner(quiz)
    question = parse_body(QuestionIn)

    with transaction():
        question_id = QuizStoreDB.add_question(
            quiz_id, question.model_dump(exclude={"question_order"}), question.question_order)
        total = QuizStoreDB.refresh_total(quiz_id)

    return jsonify({"message": "Question added successfully", "questionId": question_id,
                    "totalPoints": total}), 201


@bp.route("/api/quizzes/<int:quiz_id>/submit", methods=["POST"])
@student_only
def submit_quiz(quiz_id):
    principal = current_principal()
    student = StudentStoreDB.get_by_user(principal.user_id)
    if student is None:
        raise ApiError("Student profile not found", 403)

    quiz = QuizStoreDB.get(quiz_id)
    if not quiz or not in_tenant(quiz["school_id"]) or not _is_open(quiz):
        raise ApiError("Quiz not available", 404)

    body = parse_body(QuizSubmit)
    if QuizStoreDB.submission_for(quiz_id, student["id"]):
        raise ApiError("Quiz already submitted", 400)

    questions = QuizStoreDB.questions(quiz_id)
    answers = _answer_map(body.answers, questions)
    result = score_submission(questions, answers)

    try:
        submission_id = QuizStoreDB.create_submission({
            "quiz_id": quiz_id,
            "student_id": student["id"],
            "answers": answers,
            "score": result["score"],
            "total_points": result["total_points"],
            "percentage": result["percentage"],
            "is_graded": result["is_graded"],
        })
    except DatabaseError as exc:
        if exc.kind == "integrity":
            raise ApiError("Quiz already submitted", 400) from exc
        raise

    logger.info("Quiz %d submitted by student %d: %.1f/%.1f", quiz_id, student["id"],
                result["score"], result["total_points"])
    return jsonify({
        "message": "Quiz submitted successfully",
        "submission": QuizStoreDB.get_submission(submission_id),
        "results": result,
    }), 201


@bp.route("/api/quizzes/<int:quiz_id>/submissions")
@teacher_or_admin
def list_submissions(quiz_id):
    quiz = _load_quiz(quiz_id)
    return jsonify({"quiz": quiz, "submissions": QuizStoreDB.submissions(quiz_id)})


@bp.route("/api/quizzes/submissions/<int:submission_id>/grade", methods=["PUT"])
@teacher_or_admin
def grade_submission(submission_id):
    principal = current_principal()
    submission = QuizStoreDB.get_submission(submission_id)
    if not submission:
        raise not_found("Submission")
    quiz = _load_quiz(submission["quiz_id"])
    _require_owner(quiz)

    body = parse_body(SubmissionGrade)
    total = float(submission["total_points"] or quiz["total_points"] or 0)
    if body.score > total:
        raise ApiError("Validation failed", 400,
                       [{"field": "score", "message": f"score cannot exceed {total:g}"}])

    QuizStoreDB.grade_submission(submission_id, body.score, total, body.feedback, principal.user_id)
    return jsonify({"message": "Submission graded successfully",
                    "submission": QuizStoreDB.get_submission(submission_id)})


@bp.route("/api/quizzes/<int:quiz_id>/results")
@auth_required
def quiz_results(quiz_id):
    principal = current_principal()
    quiz = _load_quiz(quiz_id)

    if principal.role == Role.STUDENT.value:
        student = StudentStoreDB.get_by_user(principal.user_id)
        submission = QuizStoreDB.submission_for(quiz_id, student["id"]) if student else None
        if submission is None:
            raise ApiError("No submission found", 404)
        return jsonify({"quiz": quiz, "submission": submission})

    if not (is_admin(principal.role) or principal.role == Role.TEACHER.value):
        raise ApiError("Access denied. Insufficient permissions.", 403)

    submissions = QuizStoreDB.submissions(quiz_id)
    graded = [s for s in submissions if s["is_graded"]]
    average = round(sum(float(s["percentage"]) for s in graded) / len(graded), 2) if graded else None
    return jsonify({
        "quiz": quiz,
        "submissions": submissions,
        "summary": {"submitted": len(submissions), "graded": len(graded), "average_percentage": average},
    })
