"""
Seed Demo Data: Standalone script and pytest helper.

Creates one demo school with a school admin, three subjects, one teacher,
a class, a parent and three students (two of them the parent's children),
plus a handful of grades and a published lesson plan.

Usage:
    python seed_demo_data.py           # Seed into the configured database
    python seed_demo_data.py --reset   # Clear demo data first
"""

from __future__ import annotations

import sys
from datetime import date, timedelta

from auth import create_account
from database import query, transaction
from db_stores import (
    ClassStoreDB,
    GradeStoreDB,
    LessonPlanStoreDB,
    SchoolStoreDB,
    StudentStoreDB,
    SubjectStoreDB,
    UserStoreDB,
)
from grading import compute_grade

DEMO_DOMAIN = "demo.edumanage.cm"
DEMO_PASSWORD = "demo123"

DEMO_SCHOOL = {
    "name": "EduManage Demo School",
    "city": "Yaoundé",
    "region": "Centre",
    "principal_name": "Mrs. Grace Mbah",
    "established_year": 1998,
    "education_system": "anglophone",
}

DEMO_SUBJECTS = [
    {"name": "Mathematics", "code": "MATH", "credits": 4},
    {"name": "English Language", "code": "ENG", "credits": 3},
    {"name": "Science", "code": "SCI", "credits": 3},
]

DEMO_STUDENTS = [
    {"first": "Alain", "last": "Tchoumi", "dob": date(2015, 3, 14), "child": True,
     "scores": [(45, 50), (38, 50), (17, 20)]},
    {"first": "Brenda", "last": "Tchoumi", "dob": date(2016, 7, 2), "child": True,
     "scores": [(42, 50), (27, 50), (14, 20)]},
    {"first": "Cyril", "last": "Ndongo", "dob": date(2015, 11, 23), "child": False,
     "scores": [(30, 50), (44, 50), (19, 20)]},
]

ASSIGNMENTS = [("Term 1 Test", "exam"), ("Fractions Homework", "assignment"), ("Mental Maths Quiz", "quiz")]


def _email(local: str) -> str:
    return f"{local}@{DEMO_DOMAIN}"


def seed() -> dict:
    """Seed demo data. Returns a summary dict; running twice is a no-op."""
    if UserStoreDB.email_exists(_email("admin")):
        return {"skipped": True, "reason": "demo data already present"}

    with transaction():
        school_id = SchoolStoreDB.create(DEMO_SCHOOL)
        create_account(_email("admin"), DEMO_PASSWORD, "Grace", "Mbah", "school_admin",
                       school_id=school_id)

        subject_ids = [SubjectStoreDB.create({**s, "school_id": school_id}) for s in DEMO_SUBJECTS]

        _, teacher_id = create_account(
            _email("teacher"), DEMO_PASSWORD, "Paul", "Eto", "teacher", school_id=school_id,
            profile={"department": "Mathematics", "qualification": "B.Ed", "specialization": "Numeracy"},
        )
        class_id = ClassStoreDB.create({
            "name": "Class 5 Mathematics", "subject_id": subject_ids[0], "teacher_id": teacher_id,
            "school_id": school_id, "class_level": 5, "room_number": "B12",
            "schedule_days": "Mon,Wed,Fri", "start_time": "08:00", "end_time": "09:00",
            "semester": "First", "academic_year": "2025/2026",
        })

        _, parent_id = create_account(
            _email("parent"), DEMO_PASSWORD, "Marie", "Tchoumi", "parent", school_id=school_id,
            profile={"parent_type": "mother", "occupation": "Nurse"},
        )

        grade_count = 0
        for student in DEMO_STUDENTS:
            _, student_pk = create_account(
                _email(student["first"].lower()), DEMO_PASSWORD, student["first"], student["last"],
                "student", school_id=school_id,
                profile={
                    "grade_level": 5,
                    "date_of_birth": student["dob"],
                    "class_id": class_id,
                    "parent_id": parent_id if student["child"] else None,
                },
            )
            for (name, kind), (earned, possible) in zip(ASSIGNMENTS, student["scores"]):
                percentage, letter = compute_grade(earned, possible)
                GradeStoreDB.create({
                    "student_id": student_pk, "class_id": class_id, "assignment_name": name,
                    "assignment_type": kind, "points_earned": earned, "points_possible": possible,
                    "grade_percentage": percentage, "letter_grade": letter, "graded_by": teacher_id,
                })
                grade_count += 1

        LessonPlanStoreDB.create({
            "title": "Adding fractions with unlike denominators",
            "subject_id": subject_ids[0], "class_id": class_id, "teacher_id": teacher_id,
            "school_id": school_id, "objectives": "Find common denominators",
            "duration_minutes": 60, "lesson_date": date.today() + timedelta(days=2),
            "status": "published",
        })

    return {
        "school_id": school_id,
        "teacher_id": teacher_id,
        "class_id": class_id,
        "students_created": len(DEMO_STUDENTS),
        "grades_seeded": grade_count,
    }


def clear_demo() -> None:
    """Remove all demo data."""
    with transaction():
        query("DELETE FROM users WHERE email LIKE ?", (f"%@{DEMO_DOMAIN}",)).unwrap()
        query("DELETE FROM schools WHERE name = ?", (DEMO_SCHOOL["name"],)).unwrap()


if __name__ == "__main__":
    from app import create_app
    from database import init_db, run_migrations

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        if "--reset" in sys.argv:
            clear_demo()
            print("[Seed] Demo data cleared.")
        result = seed()
        print(f"[Seed] Done: {result}")
