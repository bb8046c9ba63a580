"""
Test fixtures for EduManage.

Provides app, client, per-role bearer headers and a small query helper,
all backed by a file-based SQLite database seeded with two schools.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

PASSWORD = "password123"


def _seed() -> dict:
    """Two schools; school 1 gets one account per role plus a class."""
    from auth import create_account
    from database import transaction
    from db_stores import ClassStoreDB, SchoolStoreDB, SubjectStoreDB

    ids: dict = {}
    with transaction():
        ids["school"] = SchoolStoreDB.create({"name": "Test School", "city": "Buea",
                                              "education_system": "anglophone"})
        ids["school2"] = SchoolStoreDB.create({"name": "Other School", "city": "Douala",
                                               "education_system": "francophone"})

        ids["super_admin_user"], _ = create_account("super@test.cm", PASSWORD, "Sam", "Super", "super_admin")
        ids["admin_user"], _ = create_account("admin@test.cm", PASSWORD, "Ada", "Admin", "school_admin",
                                              school_id=ids["school"])
        ids["admin2_user"], _ = create_account("admin2@test.cm", PASSWORD, "Ola", "Other", "school_admin",
                                               school_id=ids["school2"])
        ids["teacher_user"], ids["teacher"] = create_account(
            "teacher@test.cm", PASSWORD, "Tom", "Teach", "teacher", school_id=ids["school"],
            profile={"department": "Mathematics"})
        ids["teacher2_user"], ids["teacher2"] = create_account(
            "teacher2@test.cm", PASSWORD, "Tina", "Second", "teacher", school_id=ids["school"])

        ids["subject"] = SubjectStoreDB.create({"name": "Mathematics", "code": "MATH",
                                                "school_id": ids["school"]})
        ids["class"] = ClassStoreDB.create({"name": "Class 5 Maths", "subject_id": ids["subject"],
                                            "teacher_id": ids["teacher"], "school_id": ids["school"],
                                            "class_level": 5})

        ids["parent_user"], ids["parent"] = create_account(
            "parent@test.cm", PASSWORD, "Pat", "Parent", "parent", school_id=ids["school"],
            profile={"parent_type": "mother"})
        ids["student_user"], ids["student"] = create_account(
            "student@test.cm", PASSWORD, "Stu", "Dent", "student", school_id=ids["school"],
            profile={"grade_level": 5, "date_of_birth": "2015-04-01", "class_id": ids["class"],
                     "parent_id": ids["parent"], "student_id": "STU-0001"})
        ids["student2_user"], ids["student2"] = create_account(
            "student2@test.cm", PASSWORD, "Eve", "Elsewhere", "student", school_id=ids["school2"],
            profile={"grade_level": 3})
    return ids


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    app = create_app({
        "TESTING": True,
        "DATABASE": str(tmp_path / "test.db"),
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "SECRET_KEY": "test-secret-key",
        "JWT_SECRET": "test-jwt-secret",
    })

    with app.app_context():
        from database import init_db, run_migrations

        init_db()
        run_migrations()
        app.config["SEED"] = _seed()

    # Requests must push their own app context, so none stays active here
    yield app


@pytest.fixture
def ids(app):
    """Primary keys of the seeded rows."""
    return app.config["SEED"]


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


@pytest.fixture
def tokens(app, ids):
    """Bearer tokens keyed by seeded account name."""
    from security import create_token

    accounts = {
        "super_admin": ("super_admin_user", "super@test.cm", "super_admin"),
        "admin": ("admin_user", "admin@test.cm", "school_admin"),
        "admin2": ("admin2_user", "admin2@test.cm", "school_admin"),
        "teacher": ("teacher_user", "teacher@test.cm", "teacher"),
        "teacher2": ("teacher2_user", "teacher2@test.cm", "teacher"),
        "parent": ("parent_user", "parent@test.cm", "parent"),
        "student": ("student_user", "student@test.cm", "student"),
        "student2": ("student2_user", "student2@test.cm", "student"),
    }
    with app.app_context():
        return {name: create_token(ids[key], email, role) for name, (key, email, role) in accounts.items()}


@pytest.fixture
def auth(tokens):
    """auth("teacher") -> Authorization header for that seeded account."""
    def headers(name: str) -> dict:
        return {"Authorization": f"Bearer {tokens[name]}"}
    return headers


@pytest.fixture
def fetch(app):
    """Run a read query in a fresh app context and return the rows."""
    def run(sql: str, params=()) -> list[dict]:
        from database import query
        with app.app_context():
            return query(sql, params).unwrap().rows
    return run
