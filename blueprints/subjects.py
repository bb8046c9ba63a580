"""Subject catalogue routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from db_stores import SchoolStoreDB, SubjectStoreDB
from helpers import (
    ApiError,
    admin_only,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
)
from roles import Role
from schemas import SubjectCreate, SubjectUpdate
from tenant import in_tenant

bp = Blueprint("subjects", __name__)


def _load_subject(subject_id: int) -> dict:
    subject = SubjectStoreDB.get(subject_id)
    if not subject or not in_tenant(subject["school_id"]):
        raise not_found("Subject")
    return subject


@bp.route("/api/subjects")
@auth_required
def list_subjects():
    page, limit = paginate_args()
    subjects, total = SubjectStoreDB.list(page, limit, search=request.args.get("search"))
    return jsonify(paginated_response(subjects, total, page, limit, key="subjects"))


@bp.route("/api/subjects/<int:subject_id>")
@auth_required
def get_subject(subject_id):
    return jsonify({"subject": _load_subject(subject_id)})


@bp.route("/api/subjects", methods=["POST"])
@admin_only
def create_subject():
    principal = current_principal()
    body = parse_body(SubjectCreate)
    school_id = body.school_id if principal.role == Role.SUPER_ADMIN.value else principal.school_id
    if school_id is not None and not SchoolStoreDB.exists(school_id):
        raise not_found("School")

    code = body.code or None
    if code and SubjectStoreDB.code_taken(code, school_id):
        raise ApiError("Subject code already exists", 400)

    subject_id = SubjectStoreDB.create({
        "name": body.name, "code": code, "description": body.description,
        "credits": body.credits, "school_id": school_id,
    })
    return jsonify({"message": "Subject created successfully",
                    "subject": SubjectStoreDB.get(subject_id)}), 201


@bp.route("/api/subjects/<int:subject_id>", methods=["PUT"])
@admin_only
def update_subject(subject_id):
    subject = _load_subject(subject_id)
    changes = parse_body(SubjectUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    if changes.get("code") and SubjectStoreDB.code_taken(changes["code"], subject["school_id"], subject_id):
        raise ApiError("Subject code already exists", 400)

    SubjectStoreDB.update(subject_id, changes)
    return jsonify({"message": "Subject updated successfully",
                    "subject": SubjectStoreDB.get(subject_id)})


@bp.route("/api/subjects/<int:subject_id>", methods=["DELETE"])
@admin_only
def delete_subject(subject_id):
    _load_subject(subject_id)
    SubjectStoreDB.delete(subject_id)
    return jsonify({"message": "Subject deleted successfully"})
