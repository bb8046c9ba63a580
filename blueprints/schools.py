"""School (tenant) management routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from auth import create_account
from database import transaction
from db_stores import SchoolStoreDB, UserStoreDB
from helpers import (
    ApiError,
    admin_only,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    roles_required,
)
from roles import Role
from schemas import SchoolCreate, SchoolUpdate, SchoolWithAdminCreate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("schools", __name__)

super_admin_only = roles_required(Role.SUPER_ADMIN.value)

SCHOOL_FIELDS = tuple(SchoolCreate.model_fields)


def _load_school(school_id: int) -> dict:
    school = SchoolStoreDB.get(school_id)
    if not school or not in_tenant(school["id"]):
        raise not_found("School")
    return school


@bp.route("/api/schools")
@auth_required
def list_schools():
    page, limit = paginate_args()
    schools, total = SchoolStoreDB.list(
        page, limit,
        search=request.args.get("search"),
        education_system=request.args.get("educationSystem") or None,
    )
    return jsonify(paginated_response(schools, total, page, limit, key="schools"))


@bp.route("/api/schools/<int:school_id>")
@auth_required
def get_school(school_id):
    return jsonify({"school": _load_school(school_id)})


@bp.route("/api/schools/<int:school_id>/stats")
@admin_only
def school_stats(school_id):
    school = _load_school(school_id)
    return jsonify({"school": {"id": school["id"], "name": school["name"]},
                    "stats": SchoolStoreDB.stats(school_id)})


@bp.route("/api/schools", methods=["POST"])
@super_admin_only
def create_school():
    body = parse_body(SchoolCreate)
    school_id = SchoolStoreDB.create(body.model_dump())
    logger.info("School %d created by %d", school_id, current_principal().user_id)
    return jsonify({"message": "School created successfully",
                    "school": SchoolStoreDB.get(school_id)}), 201


@bp.route("/api/schools/create-with-admin", methods=["POST"])
@super_admin_only
def create_school_with_admin():
    body = parse_body(SchoolWithAdminCreate)
    if UserStoreDB.email_exists(body.admin_email):
        raise ApiError("User with this email already exists", 400)

    with transaction():
        school_id = SchoolStoreDB.create({f: getattr(body, f) for f in SCHOOL_FIELDS})
        admin_id, _ = create_account(
            email=body.admin_email,
            password=body.admin_password,
            first_name=body.admin_first_name,
            last_name=body.admin_last_name,
            role=Role.SCHOOL_ADMIN.value,
            phone=body.admin_phone,
            school_id=school_id,
            education_system=body.education_system,
        )

    logger.info("School %d created with admin %d", school_id, admin_id)
    return jsonify({
        "message": "School and administrator created successfully",
        "school": SchoolStoreDB.get(school_id),
        "admin": UserStoreDB.get(admin_id),
    }), 201


@bp.route("/api/schools/<int:school_id>", methods=["PUT"])
@admin_only
def update_school(school_id):
    principal = current_principal()
    if not SchoolStoreDB.exists(school_id):
        raise not_found("School")
    if principal.role != Role.SUPER_ADMIN.value and principal.school_id != school_id:
        raise ApiError("Access denied. You can only update your own school.", 403)

    changes = parse_body(SchoolUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    SchoolStoreDB.update(school_id, changes)
    return jsonify({"message": "School updated successfully",
                    "school": SchoolStoreDB.get(school_id)})


@bp.route("/api/schools/<int:school_id>", methods=["DELETE"])
@super_admin_only
def delete_school(school_id):
    if not SchoolStoreDB.exists(school_id):
        raise not_found("School")
    if SchoolStoreDB.user_count(school_id) > 0:
        raise ApiError(
            "Cannot delete school with existing users. Please transfer or remove users first.", 400
        )
    SchoolStoreDB.delete(school_id)
    logger.info("School %d deleted by %d", school_id, current_principal().user_id)
    return jsonify({"message": "School deleted successfully"})
