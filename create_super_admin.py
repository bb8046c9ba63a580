"""
Create the platform super admin account.

Reads SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD (and optional
SUPER_ADMIN_FIRST_NAME / SUPER_ADMIN_LAST_NAME) from the environment.

Usage:
    SUPER_ADMIN_PASSWORD=... python create_super_admin.py
"""

from __future__ import annotations

import os
import sys

from auth import create_account
from database import transaction
from db_stores import UserStoreDB
from roles import Role

DEFAULT_EMAIL = "superadmin@edumanage.cm"


def create_super_admin(email: str, password: str, first_name: str = "Super",
                       last_name: str = "Admin") -> int | None:
    """Create the account; returns its id, or None if the email is taken."""
    if UserStoreDB.email_exists(email):
        return None
    with transaction():
        user_id, _ = create_account(email, password, first_name, last_name, Role.SUPER_ADMIN.value)
    return user_id


if __name__ == "__main__":
    from dotenv import load_dotenv

    from app import create_app
    from database import init_db, run_migrations

    load_dotenv()
    email = os.environ.get("SUPER_ADMIN_EMAIL", DEFAULT_EMAIL).strip().lower()
    password = os.environ.get("SUPER_ADMIN_PASSWORD", "")
    if len(password) < 6:
        print("[SuperAdmin] Set SUPER_ADMIN_PASSWORD (at least 6 characters).")
        sys.exit(1)

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        user_id = create_super_admin(
            email,
            password,
            os.environ.get("SUPER_ADMIN_FIRST_NAME", "Super"),
            os.environ.get("SUPER_ADMIN_LAST_NAME", "Admin"),
        )
        if user_id is None:
            print(f"[SuperAdmin] {email} already exists; nothing to do.")
        else:
            print(f"[SuperAdmin] Created {email} (id {user_id}).")
