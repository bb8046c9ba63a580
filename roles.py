"""Account roles and the allow-list table used by the route guards."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    SCHOOL_ADMIN = "school_admin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


ALL_ROLES: frozenset[str] = frozenset(r.value for r in Role)

ADMIN_ROLES: frozenset[str] = frozenset({
    Role.SUPER_ADMIN.value, Role.SCHOOL_ADMIN.value, Role.ADMIN.value,
})

# Named role groups accepted by helpers.roles_required()
ROLE_GROUPS: dict[str, frozenset[str]] = {
    "admin": ADMIN_ROLES,
    "teacher_or_admin": ADMIN_ROLES | {Role.TEACHER.value},
    "student_teacher_or_admin": ADMIN_ROLES | {Role.TEACHER.value, Role.STUDENT.value},
    "authenticated": ALL_ROLES,
}

# Roles a visitor may pick on the public registration form
SELF_REGISTER_ROLES: frozenset[str] = frozenset({
    Role.TEACHER.value, Role.STUDENT.value, Role.PARENT.value,
})


def is_admin(role: str) -> bool:
    return role in ADMIN_ROLES


def can_manage_role(actor_role: str, target_role: str) -> bool:
    """Only a super admin may create or promote another super admin."""
    if target_role == Role.SUPER_ADMIN.value:
        return actor_role == Role.SUPER_ADMIN.value
    return actor_role in ADMIN_ROLES
