"""
Deterministic scoring: gradebook letter grades and quiz auto-marking.
"""

from __future__ import annotations

from typing import Any

# (minimum percentage, letter), checked top-down
LETTER_THRESHOLDS: list[tuple[float, str]] = [
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
]

AUTO_GRADED_TYPES = frozenset({"multiple_choice", "true_false", "short_answer"})


def grade_percentage(points_earned: float, points_possible: float) -> float:
    if points_possible <= 0:
        raise ValueError("points_possible must be positive")
    return round(points_earned / points_possible * 100, 2)


def letter_grade(percentage: float) -> str:
    for minimum, letter in LETTER_THRESHOLDS:
        if percentage >= minimum:
            return letter
    return "F"


def compute_grade(points_earned: float, points_possible: float) -> tuple[float, str]:
    """Return (percentage, letter) for a pair of points."""
    pct = grade_percentage(points_earned, points_possible)
    return pct, letter_grade(pct)


def _normalize(answer: Any) -> str:
    if answer is None:
        return ""
    if isinstance(answer, bool):
        return "true" if answer else "false"
    return str(answer).strip().lower()


def answers_match(given: Any, expected: Any) -> bool:
    """Exact match after trimming and case folding."""
    expected_norm = _normalize(expected)
    return bool(expected_norm) and _normalize(given) == expected_norm


def score_submission(questions: list[dict[str, Any]], answers: dict[str, Any]) -> dict[str, Any]:
    """Mark a submission against the quiz questions.

    ``answers`` maps question id (as a string) to the student's answer.
    Essay questions and questions without a stored answer are left for
    manual marking, so the submission is only graded when none remain.
    """
    score = 0.0
    total = 0.0
    pending = 0
    details = []
    for q in questions:
        points = float(q.get("points") or 0)
        total += points
        given = answers.get(str(q["id"]))
        if q["question_type"] not in AUTO_GRADED_TYPES or not _normalize(q.get("correct_answer")):
            pending += 1
            details.append({"questionId": q["id"], "correct": None, "points": 0})
            continue
        correct = answers_match(given, q["correct_answer"])
        if correct:
            score += points
        details.append({"questionId": q["id"], "correct": correct, "points": points if correct else 0})

    percentage = round(score / total * 100, 2) if total else 0.0
    return {
        "score": score,
        "total_points": total,
        "percentage": percentage,
        "is_graded": pending == 0,
        "details": details,
    }
