"""
Database-backed stores for every EduManage entity.

Each store owns the SQL for one table family and returns plain dicts.
Reads unwrap their QueryResult, so a database failure surfaces as a
DatabaseError instead of looking like an empty result. List queries pass
through tenant.tenant_filter, which confines non-super-admins to their school.
"""

from __future__ import annotations

import json
import secrets
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence

from database import now_iso, placeholders, query
from tenant import tenant_filter


# ── Shared plumbing ────────────────────────────────────────

def _db_value(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return value


def _bools(row: dict[str, Any] | None, *columns: str) -> dict[str, Any] | None:
    if row is not None:
        for col in columns:
            if col in row and row[col] is not None:
                row[col] = bool(row[col])
    return row


class _Where:
    """Accumulates AND-ed predicates and their bound parameters."""

    def __init__(self) -> None:
        self.clauses: list[str] = []
        self.params: list[Any] = []

    def add(self, clause: str, *params: Any) -> "_Where":
        self.clauses.append(clause)
        self.params.extend(params)
        return self

    def add_if(self, value: Any, clause: str) -> "_Where":
        if value is not None and value != "":
            self.add(clause, value)
        return self

    def search(self, term: str | None, columns: Sequence[str]) -> "_Where":
        term = (term or "").strip()
        if term:
            pattern = f"%{term}%"
            self.add("(" + " OR ".join(f"{c} LIKE ?" for c in columns) + ")",
                     *([pattern] * len(columns)))
        return self

    def build(self, tenant_column: str | None = None) -> tuple[str, list[Any]]:
        base = " AND ".join(self.clauses)
        if tenant_column:
            return tenant_filter(tenant_column, base, self.params)
        return (f"WHERE {base}" if base else ""), list(self.params)


def _paged(select_sql: str, from_sql: str, where: tuple[str, list[Any]],
           order_by: str, page: int, limit: int) -> tuple[list[dict], int]:
    clause, params = where
    total = query(f"SELECT COUNT(*) AS cnt {from_sql} {clause}", params).unwrap().scalar(0)
    rows = query(
        f"{select_sql} {from_sql} {clause} ORDER BY {order_by} LIMIT ? OFFSET ?",
        [*params, limit, (page - 1) * limit],
    ).unwrap().rows
    return rows, int(total)


def _insert(table: str, values: dict[str, Any], stamp: bool = True) -> int:
    # Unset optional fields fall back to the column default
    values = {k: v for k, v in values.items() if v is not None}
    if stamp:
        values.setdefault("created_at", now_iso())
    cols = list(values)
    result = query(
        f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders(len(cols))})",
        [_db_value(values[c]) for c in cols],
    ).unwrap()
    return int(result.last_id)


def _update(table: str, row_id: int, changes: dict[str, Any], stamp: bool = True) -> int:
    if not changes:
        return 0
    changes = {**changes}
    if stamp:
        changes["updated_at"] = now_iso()
    assignments = ", ".join(f"{col} = ?" for col in changes)
    result = query(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        [*(_db_value(v) for v in changes.values()), row_id],
    ).unwrap()
    return result.row_count


def _delete(table: str, row_id: int) -> int:
    return query(f"DELETE FROM {table} WHERE id = ?", (row_id,)).unwrap().row_count


def _exists(sql: str, params: Sequence[Any]) -> bool:
    return query(sql, params).unwrap().first() is not None


def new_reference(prefix: str) -> str:
    """Generated identifier such as EMP-3F9A1C2B for rows created without one."""
    return f"{prefix}-{secrets.token_hex(4).upper()}"


# ── Users ──────────────────────────────────────────────────

USER_SELECT = (
    "SELECT u.id, u.email, u.first_name, u.last_name, u.role, u.phone, u.is_active, "
    "u.school_id, u.education_system, u.language, u.last_login, u.created_at, u.updated_at, "
    "s.name AS school_name"
)
USER_FROM = "FROM users u LEFT JOIN schools s ON s.id = u.school_id"


class UserStoreDB:
    """Accounts; password hashes never leave this store except via get_credentials."""

    @staticmethod
    def list(page: int, limit: int, role: str | None = None, search: str | None = None,
             is_active: bool | None = None, school_id: int | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(role, "u.role = ?")
                 .add_if(school_id, "u.school_id = ?")
                 .search(search, ("u.first_name", "u.last_name", "u.email")))
        if is_active is not None:
            where.add("u.is_active = ?", 1 if is_active else 0)
        rows, total = _paged(USER_SELECT, USER_FROM, where.build("u.school_id"),
                             "u.created_at DESC, u.id DESC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(user_id: int) -> dict | None:
        row = query(f"{USER_SELECT} {USER_FROM} WHERE u.id = ?", (user_id,)).unwrap().first()
        return _bools(row, "is_active")

    @staticmethod
    def get_credentials(email: str) -> dict | None:
        return query(
            "SELECT id, email, password_hash, role, is_active, school_id FROM users WHERE email = ?",
            (email.lower(),),
        ).unwrap().first()

    @staticmethod
    def password_hash(user_id: int) -> str | None:
        return query("SELECT password_hash FROM users WHERE id = ?", (user_id,)).unwrap().scalar()

    @staticmethod
    def email_exists(email: str) -> bool:
        return _exists("SELECT 1 FROM users WHERE email = ?", (email.lower(),))

    @staticmethod
    def create(email: str, password_hash: str, first_name: str, last_name: str, role: str,
               phone: str = "", school_id: int | None = None,
               education_system: str = "anglophone", language: str = "en") -> int:
        now = now_iso()
        return _insert("users", {
            "email": email.lower(), "password_hash": password_hash,
            "first_name": first_name, "last_name": last_name, "role": role,
            "phone": phone or "", "school_id": school_id,
            "education_system": education_system, "language": language,
            "is_active": 1, "created_at": now, "updated_at": now,
        })

    @staticmethod
    def update(user_id: int, changes: dict[str, Any]) -> int:
        return _update("users", user_id, changes)

    @staticmethod
    def set_active(user_id: int, active: bool) -> int:
        return _update("users", user_id, {"is_active": active})

    @staticmethod
    def set_password(user_id: int, password_hash: str) -> int:
        return _update("users", user_id, {"password_hash": password_hash})

    @staticmethod
    def touch_login(user_id: int) -> None:
        _update("users", user_id, {"last_login": now_iso()}, stamp=False)

    @staticmethod
    def role_of(user_id: int) -> str | None:
        return query("SELECT role FROM users WHERE id = ?", (user_id,)).unwrap().scalar()

    @staticmethod
    def audience(user_id: int | None = None, role: str | None = None,
                 school_id: int | None = None) -> list[int]:
        """Active user ids matching a notification target."""
        where = _Where().add("is_active = ?", 1)
        where.add_if(user_id, "id = ?").add_if(role, "role = ?").add_if(school_id, "school_id = ?")
        clause, params = where.build()
        rows = query(f"SELECT id FROM users {clause} ORDER BY id", params).unwrap().rows
        return [r["id"] for r in rows]


# ── Schools ────────────────────────────────────────────────

SCHOOL_SELECT = (
    "SELECT s.*, "
    "(SELECT COUNT(*) FROM users u WHERE u.school_id = s.id) AS user_count, "
    "(SELECT COUNT(*) FROM students st WHERE st.school_id = s.id) AS student_count, "
    "(SELECT COUNT(*) FROM teachers t WHERE t.school_id = s.id) AS teacher_count"
)


class SchoolStoreDB:

    @staticmethod
    def list(page: int, limit: int, search: str | None = None,
             education_system: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(education_system, "s.education_system = ?")
                 .search(search, ("s.name", "s.city", "s.principal_name")))
        rows, total = _paged(SCHOOL_SELECT, "FROM schools s", where.build("s.id"),
                             "s.name ASC, s.id ASC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(school_id: int) -> dict | None:
        row = query(
            f"{SCHOOL_SELECT}, (SELECT COUNT(*) FROM classes c WHERE c.school_id = s.id) AS class_count "
            "FROM schools s WHERE s.id = ?",
            (school_id,),
        ).unwrap().first()
        return _bools(row, "is_active")

    @staticmethod
    def exists(school_id: int) -> bool:
        return _exists("SELECT 1 FROM schools WHERE id = ?", (school_id,))

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("schools", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(school_id: int, changes: dict[str, Any]) -> int:
        return _update("schools", school_id, changes)

    @staticmethod
    def user_count(school_id: int) -> int:
        return int(query("SELECT COUNT(*) AS cnt FROM users WHERE school_id = ?",
                         (school_id,)).unwrap().scalar(0))

    @staticmethod
    def delete(school_id: int) -> int:
        return _delete("schools", school_id)

    @staticmethod
    def stats(school_id: int) -> dict[str, Any]:
        roles = query(
            "SELECT role, COUNT(*) AS cnt FROM users WHERE school_id = ? GROUP BY role",
            (school_id,),
        ).unwrap().rows

        def count(sql: str) -> int:
            return int(query(sql, (school_id,)).unwrap().scalar(0))

        avg = query(
            "SELECT AVG(g.grade_percentage) AS avg_pct FROM grades g "
            "JOIN classes c ON c.id = g.class_id WHERE c.school_id = ?",
            (school_id,),
        ).unwrap().scalar()
        return {
            "users_by_role": {r["role"]: int(r["cnt"]) for r in roles},
            "students": count("SELECT COUNT(*) AS cnt FROM students WHERE school_id = ?"),
            "teachers": count("SELECT COUNT(*) AS cnt FROM teachers WHERE school_id = ?"),
            "classes": count("SELECT COUNT(*) AS cnt FROM classes WHERE school_id = ?"),
            "subjects": count("SELECT COUNT(*) AS cnt FROM subjects WHERE school_id = ?"),
            "lesson_plans": count("SELECT COUNT(*) AS cnt FROM lesson_plans WHERE school_id = ?"),
            "quizzes": count("SELECT COUNT(*) AS cnt FROM quizzes WHERE school_id = ?"),
            "average_grade": round(float(avg), 2) if avg is not None else None,
        }


# ── Subjects ───────────────────────────────────────────────

class SubjectStoreDB:

    @staticmethod
    def list(page: int, limit: int, search: str | None = None) -> tuple[list[dict], int]:
        where = _Where().search(search, ("sub.name", "sub.code"))
        select = (
            "SELECT sub.*, (SELECT COUNT(*) FROM classes c WHERE c.subject_id = sub.id) AS class_count"
        )
        return _paged(select, "FROM subjects sub", where.build("sub.school_id"),
                      "sub.name ASC, sub.id ASC", page, limit)

    @staticmethod
    def get(subject_id: int) -> dict | None:
        return query("SELECT * FROM subjects WHERE id = ?", (subject_id,)).unwrap().first()

    @staticmethod
    def code_taken(code: str, school_id: int | None, exclude_id: int | None = None) -> bool:
        where = _Where().add("code = ?", code)
        if school_id is None:
            where.add("school_id IS NULL")
        else:
            where.add("school_id = ?", school_id)
        where.add_if(exclude_id, "id <> ?")
        clause, params = where.build()
        return _exists(f"SELECT 1 FROM subjects {clause}", params)

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("subjects", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(subject_id: int, changes: dict[str, Any]) -> int:
        return _update("subjects", subject_id, changes)

    @staticmethod
    def delete(subject_id: int) -> int:
        return _delete("subjects", subject_id)


# ── Teachers ───────────────────────────────────────────────

TEACHER_SELECT = (
    "SELECT t.*, u.first_name, u.last_name, u.email, u.phone, u.is_active, s.name AS school_name"
)
TEACHER_FROM = ("FROM teachers t JOIN users u ON u.id = t.user_id "
                "LEFT JOIN schools s ON s.id = t.school_id")


class TeacherStoreDB:

    @staticmethod
    def list(page: int, limit: int, department: str | None = None,
             search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(department, "t.department = ?")
                 .search(search, ("u.first_name", "u.last_name", "u.email", "t.employee_id")))
        rows, total = _paged(TEACHER_SELECT, TEACHER_FROM, where.build("t.school_id"),
                             "u.last_name ASC, t.id ASC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(teacher_id: int) -> dict | None:
        row = query(f"{TEACHER_SELECT} {TEACHER_FROM} WHERE t.id = ?", (teacher_id,)).unwrap().first()
        return _bools(row, "is_active")

    @staticmethod
    def get_by_user(user_id: int) -> dict | None:
        return query("SELECT * FROM teachers WHERE user_id = ?", (user_id,)).unwrap().first()

    @staticmethod
    def employee_id_taken(employee_id: str, exclude_id: int | None = None) -> bool:
        if exclude_id is None:
            return _exists("SELECT 1 FROM teachers WHERE employee_id = ?", (employee_id,))
        return _exists("SELECT 1 FROM teachers WHERE employee_id = ? AND id <> ?",
                       (employee_id, exclude_id))

    @staticmethod
    def create(user_id: int, school_id: int | None, fields: dict[str, Any]) -> int:
        now = now_iso()
        values = {**fields, "employee_id": fields.get("employee_id") or new_reference("EMP")}
        return _insert("teachers", {**values, "user_id": user_id, "school_id": school_id,
                                    "created_at": now, "updated_at": now})

    @staticmethod
    def update(teacher_id: int, changes: dict[str, Any]) -> int:
        return _update("teachers", teacher_id, changes)

    @staticmethod
    def delete(teacher_id: int) -> int:
        return _delete("teachers", teacher_id)

    @staticmethod
    def classes(teacher_id: int) -> list[dict]:
        return query(
            "SELECT c.*, sub.name AS subject_name, "
            "(SELECT COUNT(*) FROM students st WHERE st.class_id = c.id) AS enrolled_count "
            "FROM classes c JOIN subjects sub ON sub.id = c.subject_id "
            "WHERE c.teacher_id = ? ORDER BY c.name",
            (teacher_id,),
        ).unwrap().rows


# ── Parents ────────────────────────────────────────────────

PARENT_SELECT = (
    "SELECT p.*, u.first_name, u.last_name, u.email, u.phone, u.is_active, "
    "s.name AS school_name, "
    "(SELECT COUNT(*) FROM students st WHERE st.parent_id = p.id) AS children_count"
)
PARENT_FROM = ("FROM parents p JOIN users u ON u.id = p.user_id "
               "LEFT JOIN schools s ON s.id = p.school_id")

USER_FIELDS = frozenset({"first_name", "last_name", "phone", "email"})


class ParentStoreDB:

    @staticmethod
    def list(page: int, limit: int, search: str | None = None) -> tuple[list[dict], int]:
        where = _Where().search(search, ("u.first_name", "u.last_name", "u.email", "u.phone"))
        rows, total = _paged(PARENT_SELECT, PARENT_FROM, where.build("p.school_id"),
                             "u.last_name ASC, p.id ASC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(parent_id: int) -> dict | None:
        row = query(f"{PARENT_SELECT} {PARENT_FROM} WHERE p.id = ?", (parent_id,)).unwrap().first()
        return _bools(row, "is_active")

    @staticmethod
    def get_by_user(user_id: int) -> dict | None:
        return query("SELECT * FROM parents WHERE user_id = ?", (user_id,)).unwrap().first()

    @staticmethod
    def create(user_id: int, school_id: int | None, fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("parents", {**fields, "user_id": user_id, "school_id": school_id,
                                   "created_at": now, "updated_at": now})

    @staticmethod
    def update(parent: dict, changes: dict[str, Any]) -> None:
        user_changes = {k: v for k, v in changes.items() if k in USER_FIELDS}
        parent_changes = {k: v for k, v in changes.items() if k not in USER_FIELDS}
        if user_changes:
            UserStoreDB.update(parent["user_id"], user_changes)
        if parent_changes:
            _update("parents", parent["id"], parent_changes)

    @staticmethod
    def delete(parent: dict) -> int:
        """Remove the parent's account; the parent row cascades, children are unlinked."""
        return _delete("users", parent["user_id"])

    @staticmethod
    def children(parent_id: int) -> list[dict]:
        return query(
            "SELECT st.id, st.student_id, st.grade_level, st.class_id, u.first_name, u.last_name, "
            "u.email, c.name AS class_name "
            "FROM students st JOIN users u ON u.id = st.user_id "
            "LEFT JOIN classes c ON c.id = st.class_id "
            "WHERE st.parent_id = ? ORDER BY u.first_name",
            (parent_id,),
        ).unwrap().rows


# ── Classes ────────────────────────────────────────────────

CLASS_SELECT = (
    "SELECT c.*, sub.name AS subject_name, sub.code AS subject_code, "
    "tu.first_name || ' ' || tu.last_name AS teacher_name, "
    "(SELECT COUNT(*) FROM students st WHERE st.class_id = c.id) AS enrolled_count"
)
CLASS_FROM = ("FROM classes c JOIN subjects sub ON sub.id = c.subject_id "
              "LEFT JOIN teachers t ON t.id = c.teacher_id "
              "LEFT JOIN users tu ON tu.id = t.user_id")


class ClassStoreDB:

    @staticmethod
    def list(page: int, limit: int, semester: str | None = None, academic_year: str | None = None,
             subject_id: int | None = None, teacher_id: int | None = None,
             search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(semester, "c.semester = ?")
                 .add_if(academic_year, "c.academic_year = ?")
                 .add_if(subject_id, "c.subject_id = ?")
                 .add_if(teacher_id, "c.teacher_id = ?")
                 .search(search, ("c.name", "sub.name", "c.room_number")))
        return _paged(CLASS_SELECT, CLASS_FROM, where.build("c.school_id"),
                      "c.name ASC, c.id ASC", page, limit)

    @staticmethod
    def get(class_id: int) -> dict | None:
        return query(f"{CLASS_SELECT} {CLASS_FROM} WHERE c.id = ?", (class_id,)).unwrap().first()

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("classes", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(class_id: int, changes: dict[str, Any]) -> int:
        return _update("classes", class_id, changes)

    @staticmethod
    def delete(class_id: int) -> int:
        return _delete("classes", class_id)

    @staticmethod
    def students(class_id: int) -> list[dict]:
        return query(
            "SELECT st.id, st.student_id, st.grade_level, u.first_name, u.last_name, u.email "
            "FROM students st JOIN users u ON u.id = st.user_id "
            "WHERE st.class_id = ? ORDER BY u.last_name, u.first_name",
            (class_id,),
        ).unwrap().rows


# ── Students ───────────────────────────────────────────────

STUDENT_SELECT = (
    "SELECT st.*, u.first_name, u.last_name, u.email, u.phone, u.is_active, "
    "c.name AS class_name, s.name AS school_name, "
    "pu.first_name || ' ' || pu.last_name AS parent_name"
)
STUDENT_FROM = ("FROM students st JOIN users u ON u.id = st.user_id "
                "LEFT JOIN classes c ON c.id = st.class_id "
                "LEFT JOIN schools s ON s.id = st.school_id "
                "LEFT JOIN parents p ON p.id = st.parent_id "
                "LEFT JOIN users pu ON pu.id = p.user_id")


class StudentStoreDB:

    @staticmethod
    def list(page: int, limit: int, grade_level: int | None = None, class_id: int | None = None,
             parent_id: int | None = None, search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(grade_level, "st.grade_level = ?")
                 .add_if(class_id, "st.class_id = ?")
                 .add_if(parent_id, "st.parent_id = ?")
                 .search(search, ("u.first_name", "u.last_name", "u.email", "st.student_id")))
        rows, total = _paged(STUDENT_SELECT, STUDENT_FROM, where.build("st.school_id"),
                             "u.last_name ASC, st.id ASC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(student_pk: int) -> dict | None:
        row = query(f"{STUDENT_SELECT} {STUDENT_FROM} WHERE st.id = ?", (student_pk,)).unwrap().first()
        return _bools(row, "is_active")

    @staticmethod
    def get_by_user(user_id: int) -> dict | None:
        return query("SELECT * FROM students WHERE user_id = ?", (user_id,)).unwrap().first()

    @staticmethod
    def student_id_taken(student_id: str, exclude_id: int | None = None) -> bool:
        if exclude_id is None:
            return _exists("SELECT 1 FROM students WHERE student_id = ?", (student_id,))
        return _exists("SELECT 1 FROM students WHERE student_id = ? AND id <> ?",
                       (student_id, exclude_id))

    @staticmethod
    def create(user_id: int, school_id: int | None, fields: dict[str, Any]) -> int:
        now = now_iso()
        values = {**fields,
                  "student_id": fields.get("student_id") or new_reference("STU"),
                  "enrollment_date": fields.get("enrollment_date") or date.today()}
        return _insert("students", {**values, "user_id": user_id, "school_id": school_id,
                                    "created_at": now, "updated_at": now})

    @staticmethod
    def update(student_pk: int, changes: dict[str, Any]) -> int:
        return _update("students", student_pk, changes)

    @staticmethod
    def delete(student_pk: int) -> int:
        return _delete("students", student_pk)


# ── Grades ─────────────────────────────────────────────────

GRADE_SELECT = (
    "SELECT g.*, su.first_name || ' ' || su.last_name AS student_name, st.student_id AS student_number, "
    "c.name AS class_name, sub.name AS subject_name"
)
GRADE_FROM = ("FROM grades g JOIN students st ON st.id = g.student_id "
              "JOIN users su ON su.id = st.user_id "
              "JOIN classes c ON c.id = g.class_id "
              "JOIN subjects sub ON sub.id = c.subject_id")


class GradeStoreDB:

    @staticmethod
    def list(page: int, limit: int, student_id: int | None = None, class_id: int | None = None,
             search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(student_id, "g.student_id = ?")
                 .add_if(class_id, "g.class_id = ?")
                 .search(search, ("g.assignment_name", "su.first_name", "su.last_name")))
        return _paged(GRADE_SELECT, GRADE_FROM, where.build("c.school_id"),
                      "g.created_at DESC, g.id DESC", page, limit)

    @staticmethod
    def for_student(student_pk: int) -> list[dict]:
        return query(f"{GRADE_SELECT} {GRADE_FROM} WHERE g.student_id = ? "
                     "ORDER BY g.created_at DESC, g.id DESC", (student_pk,)).unwrap().rows

    @staticmethod
    def for_class(class_id: int) -> list[dict]:
        return query(f"{GRADE_SELECT} {GRADE_FROM} WHERE g.class_id = ? "
                     "ORDER BY su.last_name, g.id", (class_id,)).unwrap().rows

    @staticmethod
    def summary(rows: Iterable[dict]) -> dict[str, Any]:
        rows = list(rows)
        if not rows:
            return {"count": 0, "average_percentage": None}
        avg = sum(float(r["grade_percentage"]) for r in rows) / len(rows)
        return {"count": len(rows), "average_percentage": round(avg, 2)}

    @staticmethod
    def get(grade_id: int) -> dict | None:
        return query(f"{GRADE_SELECT} {GRADE_FROM} WHERE g.id = ?", (grade_id,)).unwrap().first()

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("grades", {**fields, "graded_at": now, "created_at": now, "updated_at": now})

    @staticmethod
    def update(grade_id: int, changes: dict[str, Any]) -> int:
        return _update("grades", grade_id, changes)

    @staticmethod
    def delete(grade_id: int) -> int:
        return _delete("grades", grade_id)


# ── Quizzes ────────────────────────────────────────────────

QUIZ_SELECT = (
    "SELECT q.*, c.name AS class_name, sub.name AS subject_name, "
    "cu.first_name || ' ' || cu.last_name AS created_by_name, "
    "(SELECT COUNT(*) FROM quiz_questions qq WHERE qq.quiz_id = q.id) AS question_count, "
    "(SELECT COUNT(*) FROM quiz_submissions qs WHERE qs.quiz_id = q.id) AS submission_count"
)
QUIZ_FROM = ("FROM quizzes q JOIN classes c ON c.id = q.class_id "
             "LEFT JOIN subjects sub ON sub.id = q.subject_id "
             "LEFT JOIN users cu ON cu.id = q.created_by")


class QuizStoreDB:

    @staticmethod
    def list(page: int, limit: int, class_id: int | None = None, subject_id: int | None = None,
             status: str | None = None, search: str | None = None,
             created_by: int | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(class_id, "q.class_id = ?")
                 .add_if(subject_id, "q.subject_id = ?")
                 .add_if(status, "q.status = ?")
                 .add_if(created_by, "q.created_by = ?")
                 .search(search, ("q.title", "q.description")))
        return _paged(QUIZ_SELECT, QUIZ_FROM, where.build("q.school_id"),
                      "q.created_at DESC, q.id DESC", page, limit)

    @staticmethod
    def get(quiz_id: int) -> dict | None:
        return query(f"{QUIZ_SELECT} {QUIZ_FROM} WHERE q.id = ?", (quiz_id,)).unwrap().first()

    @staticmethod
    def questions(quiz_id: int, include_answers: bool = True) -> list[dict]:
        rows = query(
            "SELECT * FROM quiz_questions WHERE quiz_id = ? ORDER BY question_order, id",
            (quiz_id,),
        ).unwrap().rows
        for row in rows:
            row["options"] = json.loads(row["options"] or "[]")
            if not include_answers:
                row.pop("correct_answer", None)
        return rows

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("quizzes", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def add_question(quiz_id: int, question: dict[str, Any], order: int | None = None) -> int:
        if order is None:
            order = int(query("SELECT COUNT(*) AS cnt FROM quiz_questions WHERE quiz_id = ?",
                              (quiz_id,)).unwrap().scalar(0)) + 1
        values = {**question, "quiz_id": quiz_id, "question_order": order}
        return _insert("quiz_questions", values)

    @staticmethod
    def refresh_total(quiz_id: int) -> float:
        total = float(query("SELECT SUM(points) AS total FROM quiz_questions WHERE quiz_id = ?",
                            (quiz_id,)).unwrap().scalar(0))
        _update("quizzes", quiz_id, {"total_points": total})
        return total

    @staticmethod
    def update(quiz_id: int, changes: dict[str, Any]) -> int:
        return _update("quizzes", quiz_id, changes)

    @staticmethod
    def delete(quiz_id: int) -> int:
        return _delete("quizzes", quiz_id)

    @staticmethod
    def submission_for(quiz_id: int, student_pk: int) -> dict | None:
        row = query("SELECT * FROM quiz_submissions WHERE quiz_id = ? AND student_id = ?",
                    (quiz_id, student_pk)).unwrap().first()
        return QuizStoreDB._decode_submission(row)

    @staticmethod
    def create_submission(fields: dict[str, Any]) -> int:
        values = {**fields, "submitted_at": now_iso()}
        if values.get("is_graded"):
            values["graded_at"] = values["submitted_at"]
        return _insert("quiz_submissions", values, stamp=False)

    @staticmethod
    def submissions(quiz_id: int) -> list[dict]:
        rows = query(
            "SELECT qs.*, u.first_name || ' ' || u.last_name AS student_name, "
            "st.student_id AS student_number "
            "FROM quiz_submissions qs JOIN students st ON st.id = qs.student_id "
            "JOIN users u ON u.id = st.user_id "
            "WHERE qs.quiz_id = ? ORDER BY qs.submitted_at DESC, qs.id DESC",
            (quiz_id,),
        ).unwrap().rows
        return [QuizStoreDB._decode_submission(r) for r in rows]

    @staticmethod
    def get_submission(submission_id: int) -> dict | None:
        row = query("SELECT * FROM quiz_submissions WHERE id = ?", (submission_id,)).unwrap().first()
        return QuizStoreDB._decode_submission(row)

    @staticmethod
    def grade_submission(submission_id: int, score: float, total: float, feedback: str,
                         graded_by: int) -> int:
        percentage = round(score / total * 100, 2) if total else 0.0
        return _update("quiz_submissions", submission_id, {
            "score": score, "percentage": percentage, "feedback": feedback,
            "is_graded": True, "graded_by": graded_by, "graded_at": now_iso(),
        }, stamp=False)

    @staticmethod
    def _decode_submission(row: dict | None) -> dict | None:
        if row is not None:
            row["answers"] = json.loads(row["answers"] or "{}")
            _bools(row, "is_graded")
        return row


# ── Lesson plans ───────────────────────────────────────────

LESSON_SELECT = (
    "SELECT lp.*, sub.name AS subject_name, c.name AS class_name, "
    "tu.first_name || ' ' || tu.last_name AS teacher_name"
)
LESSON_FROM = ("FROM lesson_plans lp JOIN subjects sub ON sub.id = lp.subject_id "
               "LEFT JOIN classes c ON c.id = lp.class_id "
               "JOIN teachers t ON t.id = lp.teacher_id "
               "JOIN users tu ON tu.id = t.user_id")


class LessonPlanStoreDB:

    @staticmethod
    def list(page: int, limit: int, subject_id: int | None = None, class_id: int | None = None,
             teacher_id: int | None = None, status: str | None = None,
             search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(subject_id, "lp.subject_id = ?")
                 .add_if(class_id, "lp.class_id = ?")
                 .add_if(teacher_id, "lp.teacher_id = ?")
                 .add_if(status, "lp.status = ?")
                 .search(search, ("lp.title", "lp.description", "lp.objectives")))
        return _paged(LESSON_SELECT, LESSON_FROM, where.build("lp.school_id"),
                      "lp.lesson_date DESC, lp.id DESC", page, limit)

    @staticmethod
    def get(plan_id: int) -> dict | None:
        return query(f"{LESSON_SELECT} {LESSON_FROM} WHERE lp.id = ?", (plan_id,)).unwrap().first()

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("lesson_plans", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(plan_id: int, changes: dict[str, Any]) -> int:
        return _update("lesson_plans", plan_id, changes)

    @staticmethod
    def delete(plan_id: int) -> int:
        return _delete("lesson_plans", plan_id)

    @staticmethod
    def stats(teacher_id: int | None = None) -> dict[str, Any]:
        where = _Where().add_if(teacher_id, "teacher_id = ?")
        clause, params = where.build("school_id")
        rows = query(f"SELECT status, COUNT(*) AS cnt FROM lesson_plans {clause} GROUP BY status",
                     params).unwrap().rows
        by_status = {"draft": 0, "published": 0, "archived": 0}
        by_status.update({r["status"]: int(r["cnt"]) for r in rows})

        upcoming_where = _Where().add("lesson_date >= ?", date.today().isoformat())
        upcoming_where.add_if(teacher_id, "teacher_id = ?")
        clause, params = upcoming_where.build("school_id")
        upcoming = query(f"SELECT COUNT(*) AS cnt FROM lesson_plans {clause}", params).unwrap().scalar(0)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "upcoming": int(upcoming),
        }


# ── Files ──────────────────────────────────────────────────

FILE_SELECT = "SELECT f.*, u.first_name || ' ' || u.last_name AS uploaded_by_name"
FILE_FROM = "FROM files f LEFT JOIN users u ON u.id = f.uploaded_by"


class FileStoreDB:

    @staticmethod
    def list(page: int, limit: int, search: str | None = None, related_type: str | None = None,
             related_id: int | None = None, school_id: int | None = None,
             uploaded_by: int | None = None,
             visible_to: int | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(related_type, "f.related_type = ?")
                 .add_if(related_id, "f.related_id = ?")
                 .add_if(school_id, "f.school_id = ?")
                 .add_if(uploaded_by, "f.uploaded_by = ?")
                 .search(search, ("f.original_name", "f.description")))
        if visible_to is not None:
            where.add("(f.is_public = 1 OR f.uploaded_by = ?)", visible_to)
        rows, total = _paged(FILE_SELECT, FILE_FROM, where.build("f.school_id"),
                             "f.created_at DESC, f.id DESC", page, limit)
        return [_bools(r, "is_public") for r in rows], total

    @staticmethod
    def get(file_id: int) -> dict | None:
        row = query(f"{FILE_SELECT} {FILE_FROM} WHERE f.id = ?", (file_id,)).unwrap().first()
        return _bools(row, "is_public")

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("files", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(file_id: int, changes: dict[str, Any]) -> int:
        return _update("files", file_id, changes)

    @staticmethod
    def delete(file_id: int) -> int:
        return _delete("files", file_id)

    @staticmethod
    def count_download(file_id: int) -> None:
        query("UPDATE files SET download_count = download_count + 1 WHERE id = ?", (file_id,)).unwrap()

    @staticmethod
    def stats() -> dict[str, Any]:
        clause, params = _Where().build("school_id")
        totals = query(
            f"SELECT COUNT(*) AS total_files, COALESCE(SUM(file_size), 0) AS total_size, "
            f"COALESCE(SUM(download_count), 0) AS total_downloads FROM files {clause}",
            params,
        ).unwrap().first() or {}
        by_type = query(
            f"SELECT related_type, COUNT(*) AS cnt FROM files {clause} GROUP BY related_type",
            params,
        ).unwrap().rows
        return {
            "total_files": int(totals.get("total_files") or 0),
            "total_size": int(totals.get("total_size") or 0),
            "total_downloads": int(totals.get("total_downloads") or 0),
            "by_related_type": {r["related_type"]: int(r["cnt"]) for r in by_type},
        }


# ── Notifications ──────────────────────────────────────────

# 6 bound values per row keeps each INSERT under SQLite's 999-variable floor
NOTIFY_BATCH_SIZE = 150


class NotificationStoreDB:
    """Notifications addressed to one user."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def list(self, page: int, limit: int, unread_only: bool = False,
             notif_type: str | None = None) -> tuple[list[dict], int]:
        where = _Where().add("n.user_id = ?", self.user_id).add_if(notif_type, "n.type = ?")
        if unread_only:
            where.add("n.is_read = 0")
        rows, total = _paged(
            "SELECT n.*, su.first_name || ' ' || su.last_name AS sender_name",
            "FROM notifications n LEFT JOIN users su ON su.id = n.sender_id",
            where.build(), "n.created_at DESC, n.id DESC", page, limit,
        )
        return [_bools(r, "is_read") for r in rows], total

    def get(self, notif_id: int) -> dict | None:
        row = query("SELECT * FROM notifications WHERE id = ? AND user_id = ?",
                    (notif_id, self.user_id)).unwrap().first()
        return _bools(row, "is_read")

    def mark_read(self, notif_id: int) -> int:
        return query(
            "UPDATE notifications SET is_read = 1, read_at = ? WHERE id = ? AND user_id = ? AND is_read = 0",
            (now_iso(), notif_id, self.user_id),
        ).unwrap().row_count

    def mark_all_read(self) -> int:
        return query(
            "UPDATE notifications SET is_read = 1, read_at = ? WHERE user_id = ? AND is_read = 0",
            (now_iso(), self.user_id),
        ).unwrap().row_count

    def delete(self, notif_id: int) -> int:
        return query("DELETE FROM notifications WHERE id = ? AND user_id = ?",
                     (notif_id, self.user_id)).unwrap().row_count

    def delete_all(self) -> int:
        return query("DELETE FROM notifications WHERE user_id = ?", (self.user_id,)).unwrap().row_count

    def unread_count(self) -> int:
        return int(query("SELECT COUNT(*) AS cnt FROM notifications WHERE user_id = ? AND is_read = 0",
                         (self.user_id,)).unwrap().scalar(0))

    def stats(self) -> dict[str, Any]:
        rows = query(
            "SELECT type, COUNT(*) AS cnt, SUM(CASE WHEN is_read = 0 THEN 1 ELSE 0 END) AS unread "
            "FROM notifications WHERE user_id = ? GROUP BY type",
            (self.user_id,),
        ).unwrap().rows
        by_type = {r["type"]: int(r["cnt"]) for r in rows}
        return {
            "total": sum(by_type.values()),
            "unread": sum(int(r["unread"] or 0) for r in rows),
            "by_type": by_type,
        }

    @staticmethod
    def create_bulk(user_ids: Sequence[int], title: str, message: str, notif_type: str,
                    sender_id: int | None) -> int:
        """Insert one notification per recipient, NOTIFY_BATCH_SIZE rows per INSERT.

        Callers wrap this in a transaction so a failed batch leaves no rows.
        """
        now = now_iso()
        for start in range(0, len(user_ids), NOTIFY_BATCH_SIZE):
            batch = user_ids[start:start + NOTIFY_BATCH_SIZE]
            rows_sql = ", ".join(["(?, ?, ?, ?, ?, ?)"] * len(batch))
            params: list[Any] = []
            for uid in batch:
                params.extend([uid, sender_id, title, message, notif_type, now])
            query(
                "INSERT INTO notifications (user_id, sender_id, title, message, type, created_at) "
                f"VALUES {rows_sql}",
                params,
            ).unwrap()
        return len(user_ids)


# ── CMS: premium content, packages, subscriptions ──────────

CONTENT_SELECT = (
    "SELECT pc.*, "
    "(SELECT COUNT(*) FROM content_subscriptions cs WHERE cs.content_id = pc.id) AS subscription_count"
)


class ContentStoreDB:

    @staticmethod
    def list(page: int, limit: int, content_type: str | None = None, class_level: int | None = None,
             education_system: str | None = None, is_premium: bool | None = None,
             search: str | None = None) -> tuple[list[dict], int]:
        where = (_Where()
                 .add_if(content_type, "pc.content_type = ?")
                 .add_if(class_level, "pc.class_level = ?")
                 .add_if(education_system, "pc.education_system = ?")
                 .search(search, ("pc.title", "pc.description", "pc.subject")))
        if is_premium is not None:
            where.add("pc.is_premium = ?", 1 if is_premium else 0)
        rows, total = _paged(CONTENT_SELECT, "FROM premium_content pc", where.build(),
                             "pc.created_at DESC, pc.id DESC", page, limit)
        return [_bools(r, "is_premium", "is_active") for r in rows], total

    @staticmethod
    def get(content_id: int) -> dict | None:
        row = query(f"{CONTENT_SELECT} FROM premium_content pc WHERE pc.id = ?",
                    (content_id,)).unwrap().first()
        return _bools(row, "is_premium", "is_active")

    @staticmethod
    def existing_ids(content_ids: Sequence[int]) -> set[int]:
        if not content_ids:
            return set()
        rows = query(
            f"SELECT id FROM premium_content WHERE id IN ({placeholders(len(content_ids))})",
            list(content_ids),
        ).unwrap().rows
        return {int(r["id"]) for r in rows}

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("premium_content", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def update(content_id: int, changes: dict[str, Any]) -> int:
        return _update("premium_content", content_id, changes)

    @staticmethod
    def delete(content_id: int) -> int:
        return _delete("premium_content", content_id)


class PackageStoreDB:

    @staticmethod
    def list(page: int, limit: int, active_only: bool = False) -> tuple[list[dict], int]:
        where = _Where()
        if active_only:
            where.add("sp.is_active = 1")
        select = (
            "SELECT sp.*, "
            "(SELECT COUNT(*) FROM package_content pkc WHERE pkc.package_id = sp.id) AS content_count, "
            "(SELECT COUNT(*) FROM subscriptions sb WHERE sb.package_id = sp.id "
            "AND sb.status = 'active') AS active_subscriptions"
        )
        rows, total = _paged(select, "FROM subscription_packages sp", where.build(),
                             "sp.created_at DESC, sp.id DESC", page, limit)
        return [_bools(r, "is_active") for r in rows], total

    @staticmethod
    def get(package_id: int) -> dict | None:
        row = query("SELECT * FROM subscription_packages WHERE id = ?", (package_id,)).unwrap().first()
        if row is None:
            return None
        row["contents"] = query(
            "SELECT pc.id, pc.title, pc.content_type, pc.class_level, pc.price "
            "FROM package_content pkc JOIN premium_content pc ON pc.id = pkc.content_id "
            "WHERE pkc.package_id = ? ORDER BY pc.title",
            (package_id,),
        ).unwrap().rows
        return _bools(row, "is_active")

    @staticmethod
    def create(fields: dict[str, Any]) -> int:
        now = now_iso()
        return _insert("subscription_packages", {**fields, "created_at": now, "updated_at": now})

    @staticmethod
    def add_content(package_id: int, content_id: int) -> int:
        result = query("INSERT INTO package_content (package_id, content_id) VALUES (?, ?)",
                       (package_id, content_id)).unwrap()
        return int(result.last_id)

    @staticmethod
    def subscribe(school_id: int, package: dict, amount: float | None,
                  start: date | None = None) -> int:
        start = start or date.today()
        end = start + timedelta(days=int(package["duration_days"]))
        return _insert("subscriptions", {
            "school_id": school_id,
            "package_id": package["id"],
            "amount": package["price"] if amount is None else amount,
            "status": "active",
            "start_date": start,
            "end_date": end,
        })


class AnalyticsStoreDB:
    """Platform-wide CMS analytics for a trailing period in days."""

    @staticmethod
    def overview(period_days: int) -> dict[str, Any]:
        since = (datetime.now() - timedelta(days=period_days)).isoformat(timespec="seconds")

        def count(sql: str, params: Sequence[Any] = ()) -> int:
            return int(query(sql, params).unwrap().scalar(0))

        kpis = {
            "total_schools": count("SELECT COUNT(*) AS cnt FROM schools"),
            "total_users": count("SELECT COUNT(*) AS cnt FROM users"),
            "total_content": count("SELECT COUNT(*) AS cnt FROM premium_content"),
            "active_subscriptions": count(
                "SELECT COUNT(*) AS cnt FROM subscriptions WHERE status = 'active'"),
            "new_users": count("SELECT COUNT(*) AS cnt FROM users WHERE created_at >= ?", (since,)),
        }
        revenue = query(
            "SELECT COALESCE(SUM(amount), 0) AS total, COUNT(*) AS cnt FROM subscriptions "
            "WHERE created_at >= ? AND status <> 'cancelled'",
            (since,),
        ).unwrap().first() or {}
        performance = query(
            "SELECT pc.id, pc.title, pc.content_type, "
            "(SELECT COUNT(*) FROM content_subscriptions cs WHERE cs.content_id = pc.id "
            "AND cs.created_at >= ?) AS subscriptions "
            "FROM premium_content pc ORDER BY subscriptions DESC, pc.id ASC LIMIT 10",
            (since,),
        ).unwrap().rows
        return {
            "period_days": period_days,
            "kpis": kpis,
            "revenue": {
                "total": float(revenue.get("total") or 0),
                "subscriptions": int(revenue.get("cnt") or 0),
            },
            "content_performance": performance,
        }


# ── Dashboard counters ─────────────────────────────────────

class DashboardStoreDB:

    @staticmethod
    def counts() -> dict[str, int]:
        """Tenant-scoped entity counts for admin dashboards."""
        result: dict[str, int] = {}
        for key, table in (("students", "students"), ("teachers", "teachers"),
                           ("parents", "parents"), ("classes", "classes"),
                           ("subjects", "subjects"), ("users", "users")):
            clause, params = _Where().build("school_id")
            result[key] = int(query(f"SELECT COUNT(*) AS cnt FROM {table} {clause}",
                                    params).unwrap().scalar(0))
        schools_clause, schools_params = _Where().build("id")
        result["schools"] = int(query(f"SELECT COUNT(*) AS cnt FROM schools {schools_clause}",
                                      schools_params).unwrap().scalar(0))
        return result
