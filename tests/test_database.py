"""Tests for database.py: schema, QueryResult, transactions, migrations."""

import pytest

from database import (
    MIGRATIONS,
    DatabaseError,
    QueryResult,
    get_db,
    placeholders,
    query,
    run_migrations,
    transaction,
)


class TestSchema:
    def test_tables_exist(self, app):
        with app.app_context():
            tables = {r["name"] for r in get_db().execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()}
        expected = {
            "schema_version", "schools", "users", "subjects", "teachers", "parents", "classes",
            "students", "grades", "quizzes", "quiz_questions", "quiz_submissions", "lesson_plans",
            "files", "notifications", "premium_content", "subscription_packages",
            "package_content", "subscriptions", "content_subscriptions", "class_name_mappings",
        }
        assert expected <= tables

    def test_foreign_keys_enabled(self, app):
        with app.app_context():
            assert get_db().execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_class_name_mappings_seeded(self, fetch):
        rows = fetch("SELECT class_name FROM class_name_mappings WHERE education_system = ? "
                     "ORDER BY level", ("francophone",))
        assert [r["class_name"] for r in rows] == ["SIL", "CP", "CE1", "CE2", "CM1", "CM2"]

    def test_user_delete_cascades_to_profile(self, app, ids, fetch):
        with app.app_context():
            query("DELETE FROM users WHERE id = ?", (ids["teacher2_user"],)).unwrap()
        assert fetch("SELECT id FROM teachers WHERE id = ?", (ids["teacher2"],)) == []

    def test_role_check_constraint(self, app):
        with app.app_context():
            result = query(
                "INSERT INTO users (email, password_hash, first_name, last_name, role) "
                "VALUES ('x@test.cm', 'h', 'X', 'Y', 'janitor')"
            )
        assert not result.ok
        assert result.error == "integrity"


class TestQueryResult:
    def test_select_returns_dict_rows(self, app):
        with app.app_context():
            result = query("SELECT email FROM users WHERE email = ?", ("admin@test.cm",))
        assert result.ok
        assert result.rows == [{"email": "admin@test.cm"}]
        assert result.row_count == 1

    def test_scalar_default(self):
        assert QueryResult().scalar(7) == 7
        assert QueryResult(rows=[{"n": None}]).scalar(0) == 0
        assert QueryResult(rows=[{"n": 3}]).scalar() == 3

    def test_insert_reports_last_id(self, app):
        with app.app_context():
            result = query("INSERT INTO schools (name) VALUES (?)", ("New School",))
            assert result.ok
            assert result.last_id is not None
            assert query("SELECT name FROM schools WHERE id = ?",
                         (result.last_id,)).first()["name"] == "New School"

    def test_failure_is_returned_not_raised(self, app):
        with app.app_context():
            result = query("SELECT * FROM no_such_table")
        assert not result.ok
        assert result.error == "unavailable"
        assert "no_such_table" in result.detail

    def test_unwrap_raises_database_error(self, app):
        with app.app_context():
            with pytest.raises(DatabaseError) as exc_info:
                query("INSERT INTO users (email) VALUES (NULL)").unwrap()
        assert exc_info.value.kind == "integrity"

    def test_placeholders(self):
        assert placeholders(3) == "?, ?, ?"


class TestTransaction:
    def test_commits_on_success(self, app, fetch):
        with app.app_context():
            with transaction():
                query("INSERT INTO schools (name) VALUES (?)", ("Tx One",)).unwrap()
                query("INSERT INTO schools (name) VALUES (?)", ("Tx Two",)).unwrap()
        assert len(fetch("SELECT id FROM schools WHERE name LIKE 'Tx %'")) == 2

    def test_rolls_back_on_error(self, app, fetch):
        with app.app_context():
            with pytest.raises(DatabaseError):
                with transaction():
                    query("INSERT INTO schools (name) VALUES (?)", ("Rolled Back",)).unwrap()
                    query("INSERT INTO users (email) VALUES (NULL)").unwrap()
        assert fetch("SELECT id FROM schools WHERE name = 'Rolled Back'") == []

    def test_nested_blocks_join_outer(self, app, fetch):
        with app.app_context():
            with pytest.raises(RuntimeError):
                with transaction():
                    query("INSERT INTO schools (name) VALUES (?)", ("Outer",)).unwrap()
                    with transaction():
                        query("INSERT INTO schools (name) VALUES (?)", ("Inner",)).unwrap()
                    raise RuntimeError("boom")
        assert fetch("SELECT id FROM schools WHERE name IN ('Outer', 'Inner')") == []


class TestMigrations:
    def test_all_versions_recorded(self, fetch):
        versions = {r["version"] for r in fetch("SELECT version FROM schema_version")}
        assert versions == {v for v, _ in MIGRATIONS}

    def test_rerun_is_noop(self, app, fetch):
        before = len(fetch("SELECT id FROM schema_version"))
        with app.app_context():
            run_migrations()
        assert len(fetch("SELECT id FROM schema_version")) == before
