"""
Database layer for EduManage.

Raw sqlite3 (default) or pooled PostgreSQL through pg_compat, parameterized
queries only. All application SQL goes through query(), which returns a
QueryResult instead of raising, and transaction(), which groups several
statements into one commit. A schema_version table handles migrations.
"""

from __future__ import annotations

import fcntl
import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Sequence

from flask import current_app, g

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = str(Path(__file__).parent / "edumanage.db")


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Tenants
CREATE TABLE IF NOT EXISTS schools (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    address TEXT NOT NULL DEFAULT '',
    city TEXT NOT NULL DEFAULT '',
    region TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT '',
    website TEXT NOT NULL DEFAULT '',
    principal_name TEXT NOT NULL DEFAULT '',
    established_year INTEGER,
    education_system TEXT NOT NULL DEFAULT 'anglophone'
        CHECK (education_system IN ('anglophone', 'francophone')),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Accounts
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN
        ('super_admin', 'school_admin', 'admin', 'teacher', 'student', 'parent')),
    phone TEXT NOT NULL DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    school_id INTEGER REFERENCES schools(id) ON DELETE SET NULL,
    education_system TEXT NOT NULL DEFAULT 'anglophone',
    language TEXT NOT NULL DEFAULT 'en',
    last_login TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_users_school_role ON users(school_id, role);

CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    code TEXT,
    description TEXT NOT NULL DEFAULT '',
    credits INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE(school_id, code)
);

CREATE TABLE IF NOT EXISTS teachers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    employee_id TEXT UNIQUE NOT NULL,
    department TEXT NOT NULL DEFAULT '',
    hire_date TEXT NOT NULL DEFAULT '',
    salary REAL,
    qualification TEXT NOT NULL DEFAULT '',
    specialization TEXT NOT NULL DEFAULT '',
    school_id INTEGER REFERENCES schools(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS parents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    parent_type TEXT NOT NULL DEFAULT 'guardian',
    occupation TEXT NOT NULL DEFAULT '',
    workplace TEXT NOT NULL DEFAULT '',
    address TEXT NOT NULL DEFAULT '',
    emergency_contact TEXT NOT NULL DEFAULT '',
    school_id INTEGER REFERENCES schools(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS classes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    subject_id INTEGER NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    teacher_id INTEGER REFERENCES teachers(id) ON DELETE SET NULL,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    class_level INTEGER,
    room_number TEXT NOT NULL DEFAULT '',
    schedule_days TEXT NOT NULL DEFAULT '',
    start_time TEXT NOT NULL DEFAULT '',
    end_time TEXT NOT NULL DEFAULT '',
    max_students INTEGER NOT NULL DEFAULT 30,
    semester TEXT NOT NULL DEFAULT '',
    academic_year TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS students (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    student_id TEXT UNIQUE NOT NULL,
    grade_level INTEGER NOT NULL DEFAULT 1,
    date_of_birth TEXT NOT NULL DEFAULT '',
    parent_id INTEGER REFERENCES parents(id) ON DELETE SET NULL,
    class_id INTEGER REFERENCES classes(id) ON DELETE SET NULL,
    school_id INTEGER REFERENCES schools(id) ON DELETE SET NULL,
    address TEXT NOT NULL DEFAULT '',
    emergency_contact TEXT NOT NULL DEFAULT '',
    enrollment_date TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Gradebook
CREATE TABLE IF NOT EXISTS grades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
    class_id INTEGER NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
    assignment_name TEXT NOT NULL,
    assignment_type TEXT NOT NULL DEFAULT 'assignment',
    points_earned REAL NOT NULL,
    points_possible REAL NOT NULL,
    grade_percentage REAL NOT NULL,
    letter_grade TEXT NOT NULL,
    comments TEXT NOT NULL DEFAULT '',
    graded_by INTEGER REFERENCES teachers(id) ON DELETE SET NULL,
    graded_at TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Quizzes
CREATE TABLE IF NOT EXISTS quizzes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    class_id INTEGER NOT NULL REFERENCES classes(id) ON DELETE CASCADE,
    subject_id INTEGER REFERENCES subjects(id) ON DELETE SET NULL,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    time_limit_minutes INTEGER NOT NULL DEFAULT 30,
    total_points REAL NOT NULL DEFAULT 0,
    start_date TEXT NOT NULL DEFAULT '',
    end_date TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'active', 'closed')),
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS quiz_questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    quiz_id INTEGER NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
    question_text TEXT NOT NULL,
    question_type TEXT NOT NULL DEFAULT 'multiple_choice' CHECK (question_type IN
        ('multiple_choice', 'true_false', 'short_answer', 'essay')),
    question_order INTEGER NOT NULL DEFAULT 0,
    options TEXT NOT NULL DEFAULT '[]',
    correct_answer TEXT NOT NULL DEFAULT '',
    points REAL NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS quiz_submissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    quiz_id INTEGER NOT NULL REFERENCES quizzes(id) ON DELETE CASCADE,
    student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
    answers TEXT NOT NULL DEFAULT '{}',
    score REAL NOT NULL DEFAULT 0,
    total_points REAL NOT NULL DEFAULT 0,
    percentage REAL NOT NULL DEFAULT 0,
    is_graded INTEGER NOT NULL DEFAULT 0,
    feedback TEXT NOT NULL DEFAULT '',
    graded_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    graded_at TEXT NOT NULL DEFAULT '',
    submitted_at TEXT NOT NULL DEFAULT '',
    UNIQUE(quiz_id, student_id)
);

-- Lesson planning
CREATE TABLE IF NOT EXISTS lesson_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    subject_id INTEGER NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    class_id INTEGER REFERENCES classes(id) ON DELETE SET NULL,
    teacher_id INTEGER NOT NULL REFERENCES teachers(id) ON DELETE CASCADE,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    objectives TEXT NOT NULL DEFAULT '',
    materials TEXT NOT NULL DEFAULT '',
    activities TEXT NOT NULL DEFAULT '',
    assessment TEXT NOT NULL DEFAULT '',
    homework TEXT NOT NULL DEFAULT '',
    duration_minutes INTEGER NOT NULL DEFAULT 45,
    lesson_date TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft', 'published', 'archived')),
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Attachments
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    original_name TEXT NOT NULL,
    file_path TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    uploaded_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    related_type TEXT NOT NULL DEFAULT 'general',
    related_id INTEGER,
    description TEXT NOT NULL DEFAULT '',
    is_public INTEGER NOT NULL DEFAULT 0,
    download_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Notifications
CREATE TABLE IF NOT EXISTS notifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    sender_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
    title TEXT NOT NULL,
    message TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'info' CHECK (type IN ('info', 'warning', 'success', 'error')),
    is_read INTEGER NOT NULL DEFAULT 0,
    read_at TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, is_read);

-- Content management (premium resources and packages)
CREATE TABLE IF NOT EXISTS premium_content (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    content_type TEXT NOT NULL CHECK (content_type IN
        ('quiz', 'lesson_plan', 'scheme_of_work', 'pedagogic_project', 'resource')),
    class_level INTEGER,
    education_system TEXT NOT NULL DEFAULT 'anglophone',
    subject TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL DEFAULT '',
    original_name TEXT NOT NULL DEFAULT '',
    mime_type TEXT NOT NULL DEFAULT '',
    file_size INTEGER NOT NULL DEFAULT 0,
    is_premium INTEGER NOT NULL DEFAULT 0,
    price REAL NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS subscription_packages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    price REAL NOT NULL DEFAULT 0,
    duration_days INTEGER NOT NULL DEFAULT 30,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS package_content (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_id INTEGER NOT NULL REFERENCES subscription_packages(id) ON DELETE CASCADE,
    content_id INTEGER NOT NULL REFERENCES premium_content(id) ON DELETE CASCADE,
    UNIQUE(package_id, content_id)
);

CREATE TABLE IF NOT EXISTS subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    school_id INTEGER NOT NULL REFERENCES schools(id) ON DELETE CASCADE,
    package_id INTEGER NOT NULL REFERENCES subscription_packages(id) ON DELETE CASCADE,
    amount REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'expired', 'cancelled')),
    start_date TEXT NOT NULL DEFAULT '',
    end_date TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS content_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id INTEGER NOT NULL REFERENCES premium_content(id) ON DELETE CASCADE,
    school_id INTEGER REFERENCES schools(id) ON DELETE CASCADE,
    user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Display names for class levels per education system
CREATE TABLE IF NOT EXISTS class_name_mappings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    education_system TEXT NOT NULL,
    level INTEGER NOT NULL,
    class_name TEXT NOT NULL,
    UNIQUE(education_system, level)
);
INSERT OR IGNORE INTO class_name_mappings (education_system, level, class_name) VALUES
    ('anglophone', 1, 'Class 1'), ('anglophone', 2, 'Class 2'), ('anglophone', 3, 'Class 3'),
    ('anglophone', 4, 'Class 4'), ('anglophone', 5, 'Class 5'), ('anglophone', 6, 'Class 6'),
    ('francophone', 1, 'SIL'), ('francophone', 2, 'CP'), ('francophone', 3, 'CE1'),
    ('francophone', 4, 'CE2'), ('francophone', 5, 'CM1'), ('francophone', 6, 'CM2');
"""


# Versioned migrations: (version, sql). Applied once each by run_migrations().
MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: Lookup indexes for the hot list/filter paths
    (1, """
        CREATE INDEX IF NOT EXISTS idx_students_school ON students(school_id);
        CREATE INDEX IF NOT EXISTS idx_students_class ON students(class_id);
        CREATE INDEX IF NOT EXISTS idx_teachers_school ON teachers(school_id);
        CREATE INDEX IF NOT EXISTS idx_classes_school ON classes(school_id);
        CREATE INDEX IF NOT EXISTS idx_grades_student_class ON grades(student_id, class_id);
        CREATE INDEX IF NOT EXISTS idx_quiz_questions_quiz ON quiz_questions(quiz_id, question_order);
        CREATE INDEX IF NOT EXISTS idx_lesson_plans_teacher ON lesson_plans(teacher_id);
        CREATE INDEX IF NOT EXISTS idx_files_related ON files(related_type, related_id);
    """),
]


class DatabaseError(Exception):
    """Raised when a failed QueryResult is unwrapped."""

    def __init__(self, kind: str, detail: str = ""):
        super().__init__(f"{kind}: {detail}" if detail else kind)
        self.kind = kind
        self.detail = detail


@dataclass
class QueryResult:
    """Outcome of one statement: Ok(rows) when ``error`` is None, else Err(kind)."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    last_id: int | None = None
    error: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def scalar(self, default: Any = None) -> Any:
        row = self.first()
        if not row:
            return default
        value = next(iter(row.values()))
        return default if value is None else value

    def unwrap(self) -> "QueryResult":
        if self.error is not None:
            raise DatabaseError(self.error, self.detail)
        return self


_ERROR_KINDS = {
    "IntegrityError": "integrity",
    "OperationalError": "unavailable",
    "ProgrammingError": "programming",
    "DataError": "data",
    "InterfaceError": "unavailable",
}


def _classify(exc: BaseException) -> str:
    """Map a DB-API exception (sqlite3 or psycopg2) to an error kind."""
    for cls in type(exc).__mro__:
        kind = _ERROR_KINDS.get(cls.__name__)
        if kind:
            return kind
    return "unknown"


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _is_postgres() -> bool:
    """Check if the configured database is PostgreSQL."""
    from pg_compat import is_postgres_url
    return is_postgres_url(current_app.config.get("DATABASE", ""))


def get_db():
    """Return a DB connection from Flask g, creating if needed.

    Supports both SQLite (default) and PostgreSQL (when DATABASE starts
    with postgresql:// or postgres://).
    """
    if "db" not in g:
        db_url = current_app.config.get("DATABASE", DEFAULT_DB_PATH)

        from pg_compat import is_postgres_url, connect_pg
        if is_postgres_url(db_url):
            g.db = connect_pg(
                db_url,
                maxconn=current_app.config.get("DB_POOL_MAX", 20),
                connect_timeout=current_app.config.get("DB_CONNECT_TIMEOUT", 2),
            )
            return g.db

        g.db = sqlite3.connect(db_url, timeout=current_app.config.get("DB_CONNECT_TIMEOUT", 2) + 3)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler: release the DB connection."""
    db = g.pop("db", None)
    g.pop("tx_depth", None)
    if db is not None:
        db.close()


def _in_transaction() -> bool:
    return g.get("tx_depth", 0) > 0


def _is_write(sql: str) -> bool:
    head = sql.lstrip().split(None, 1)[0].upper() if sql.strip() else ""
    return head not in ("SELECT", "WITH", "PRAGMA")


def query(sql: str, params: Sequence[Any] = ()) -> QueryResult:
    """Run one statement and report the outcome without raising.

    Rows come back as plain dicts. Outside transaction() a write is
    committed immediately; a failure is rolled back, logged and returned
    as an Err result.
    """
    start = time.perf_counter()
    try:
        db = get_db()
        cursor = db.execute(sql, tuple(params))
        rows = [dict(r) for r in cursor.fetchall()] if cursor.description else []
        if _is_write(sql):
            row_count = cursor.rowcount if cursor.rowcount is not None and cursor.rowcount >= 0 else 0
            if not _in_transaction():
                db.commit()
        else:
            row_count = len(rows)
        result = QueryResult(rows=rows, row_count=row_count, last_id=cursor.lastrowid)
    except Exception as exc:
        kind = _classify(exc)
        logger.error("Query failed (%s): %s", kind, " ".join(sql.split())[:200], exc_info=True)
        if "db" in g and not _in_transaction():
            try:
                g.db.rollback()
            except Exception:
                logger.warning("Rollback after failed query also failed", exc_info=True)
        return QueryResult(error=kind, detail=str(exc))

    logger.debug(
        "Executed query in %.1fms (%d rows): %s",
        (time.perf_counter() - start) * 1000,
        result.row_count,
        " ".join(sql.split())[:120],
    )
    return result


@contextmanager
def transaction() -> Iterator[None]:
    """Run the enclosed query() calls atomically.

    Commits when the block exits normally, rolls back and re-raises on any
    exception. Nested blocks join the outermost transaction.
    """
    db = get_db()
    depth = g.get("tx_depth", 0)
    g.tx_depth = depth + 1
    try:
        yield
    except BaseException:
        g.tx_depth = depth
        if depth == 0:
            db.rollback()
            logger.info("Transaction rolled back")
        raise
    g.tx_depth = depth
    if depth == 0:
        db.commit()


def placeholders(count: int) -> str:
    return ", ".join("?" * count)


def connect() -> str:
    """Liveness check: run a trivial query, propagating any failure."""
    row = get_db().execute("SELECT CURRENT_TIMESTAMP AS now").fetchone()
    return str(row["now"])


def close() -> None:
    """Close the request connection and any PostgreSQL pools."""
    from pg_compat import close_pools
    close_db()
    close_pools()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking so multiple worker processes starting at once
    apply each migration a single time.
    """
    db_url = current_app.config.get("DATABASE", DEFAULT_DB_PATH)
    lock_file = None

    if not _is_postgres():
        lock_path = Path(db_url).with_suffix(".migration.lock")
        try:
            lock_file = open(lock_path, "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version not in applied:
                try:
                    db.executescript(sql)
                except Exception as e:
                    err_msg = str(e).lower()
                    if "duplicate column" not in err_msg and "already exists" not in err_msg:
                        raise
                db.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, now_iso()),
                )
                db.commit()
                logger.info("Applied migration %d", version)
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            try:
                init_db()
                run_migrations()
                app._db_initialized = True
            except Exception:
                logger.error("Database initialisation failed; will retry", exc_info=True)
