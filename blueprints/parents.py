"""Parent/guardian routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from auth import create_account
from database import transaction
from db_stores import ParentStoreDB, SchoolStoreDB
from helpers import (
    ApiError,
    admin_only,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    teacher_or_admin,
)
from roles import Role, is_admin
from schemas import ParentCreate, ParentUpdate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("parents", __name__)

PARENT_FIELDS = ("parent_type", "occupation", "workplace", "address", "emergency_contact")


def _load_parent(parent_id: int) -> dict:
    parent = ParentStoreDB.get(parent_id)
    if not parent or not in_tenant(parent["school_id"]):
        raise not_found("Parent")
    return parent


def _require_view(parent: dict) -> None:
    principal = current_principal()
    if is_admin(principal.role) or principal.role == Role.TEACHER.value:
        return
    if principal.role == Role.PARENT.value and parent["user_id"] == principal.user_id:
        return
    raise ApiError("Access denied. Insufficient permissions.", 403)


@bp.route("/api/parents")
@teacher_or_admin
def list_parents():
    page, limit = paginate_args()
    parents, total = ParentStoreDB.list(page, limit, search=request.args.get("search"))
    return jsonify(paginated_response(parents, total, page, limit, key="parents"))


@bp.route("/api/parents/<int:parent_id>")
@auth_required
def get_parent(parent_id):
    parent = _load_parent(parent_id)
    _require_view(parent)
    return jsonify({"parent": {**parent, "children": ParentStoreDB.children(parent_id)}})


@bp.route("/api/parents/<int:parent_id>/children")
@auth_required
def parent_children(parent_id):
    parent = _load_parent(parent_id)
    _require_view(parent)
    return jsonify({"children": ParentStoreDB.children(parent_id)})


@bp.route("/api/parents", methods=["POST"])
@admin_only
def create_parent():
    principal = current_principal()
    body = parse_body(ParentCreate)

    school_id = body.school_id if principal.role == Role.SUPER_ADMIN.value else principal.school_id
    if school_id is not None and not SchoolStoreDB.exists(school_id):
        raise not_found("School")

    with transaction():
        _, parent_id = create_account(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            role=Role.PARENT.value,
            phone=body.phone,
            school_id=school_id,
            profile={f: getattr(body, f) for f in PARENT_FIELDS},
        )

    logger.info("Parent %d created by %d", parent_id, principal.user_id)
    return jsonify({"message": "Parent created successfully",
                    "parent": ParentStoreDB.get(parent_id)}), 201


@bp.route("/api/parents/<int:parent_id>", methods=["PUT"])
@admin_only
def update_parent(parent_id):
    parent = _load_parent(parent_id)
    changes = parse_body(ParentUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)

    with transaction():
        ParentStoreDB.update(parent, changes)
    return jsonify({"message": "Parent updated successfully",
                    "parent": ParentStoreDB.get(parent_id)})


@bp.route("/api/parents/<int:parent_id>", methods=["DELETE"])
@admin_only
def delete_parent(parent_id):
    parent = _load_parent(parent_id)
    ParentStoreDB.delete(parent)
    logger.info("Parent %d deleted by %d", parent_id, current_principal().user_id)
    return jsonify({"message": "Parent deleted successfully"})
