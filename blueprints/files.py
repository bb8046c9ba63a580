"""File attachment routes: upload, listing, download and metadata."""

from __future__ import annotations

import logging
import os

from flask import Blueprint, jsonify, request, send_file

from db_stores import FileStoreDB
from helpers import (
    ApiError,
    arg_bool,
    arg_int,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    student_teacher_or_admin,
    teacher_or_admin,
)
from roles import Role, is_admin
from schemas import FileUpdate, FileUploadForm
from tenant import in_tenant
from uploads import delete_stored, save_upload

logger = logging.getLogger(__name__)

bp = Blueprint("files", __name__)


def _is_staff() -> bool:
    role = current_principal().role
    return is_admin(role) or role == Role.TEACHER.value


def _load_file(file_id: int) -> dict:
    record = FileStoreDB.get(file_id)
    if not record or not in_tenant(record["school_id"]):
        raise not_found("File")
    principal = current_principal()
    if not _is_staff() and not record["is_public"] and record["uploaded_by"] != principal.user_id:
        raise not_found("File")
    return record


def _require_uploader(record: dict, action: str) -> None:
    principal = current_principal()
    if not is_admin(principal.role) and record["uploaded_by"] != principal.user_id:
        raise ApiError(f"Not authorized to {action} this file", 403)


@bp.route("/api/files/upload", methods=["POST"])
@student_teacher_or_admin
def upload_file():
    principal = current_principal()
    form = parse_body(FileUploadForm, request.form.to_dict())
    stored = save_upload(request.files.get("file"))

    try:
        file_id = FileStoreDB.create({
            "filename": stored.filename,
            "original_name": stored.original_name,
            "file_path": stored.path,
            "mime_type": stored.mime_type,
            "file_size": stored.size,
            "uploaded_by": principal.user_id,
            "school_id": principal.school_id,
            **form.model_dump(),
        })
    except Exception:
        stored.remove()
        raise

    logger.info("File %d uploaded by %d (%s)", file_id, principal.user_id, stored.original_name)
    return jsonify({"message": "File uploaded successfully", "file": FileStoreDB.get(file_id)}), 201


@bp.route("/api/files")
@auth_required
def list_files():
    principal = current_principal()
    page, limit = paginate_args()
    files, total = FileStoreDB.list(
        page, limit,
        search=request.args.get("search"),
        related_type=request.args.get("relatedType") or None,
        related_id=arg_int("relatedId"),
        school_id=arg_int("schoolId"),
        uploaded_by=principal.user_id if arg_bool("mine") else None,
        visible_to=None if _is_staff() else principal.user_id,
    )
    return jsonify(paginated_response(files, total, page, limit, key="files"))


@bp.route("/api/files/stats/overview")
@teacher_or_admin
def file_stats():
    return jsonify({"stats": FileStoreDB.stats()})


@bp.route("/api/files/<int:file_id>")
@auth_required
def get_file(file_id):
    return jsonify({"file": _load_file(file_id)})


@bp.route("/api/files/<int:file_id>/download")
@auth_required
def download_file(file_id):
    record = _load_file(file_id)
    if not os.path.isfile(record["file_path"]):
        logger.warning("File %d missing on disk at %s", file_id, record["file_path"])
        raise ApiError("File not found on disk", 404)
    FileStoreDB.count_download(file_id)
    return send_file(
        os.path.abspath(record["file_path"]),
        mimetype=record["mime_type"],
        as_attachment=True,
        download_name=record["original_name"],
    )


@bp.route("/api/files/<int:file_id>", methods=["PUT"])
@auth_required
def update_file(file_id):
    record = _load_file(file_id)
    _require_uploader(record, "update")
    changes = parse_body(FileUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    FileStoreDB.update(file_id, changes)
    return jsonify({"message": "File updated successfully", "file": FileStoreDB.get(file_id)})


@bp.route("/api/files/<int:file_id>", methods=["DELETE"])
@auth_required
def delete_file(file_id):
    record = _load_file(file_id)
    _require_uploader(record, "delete")
    FileStoreDB.delete(file_id)
    delete_stored(record["file_path"])
    logger.info("File %d deleted by %d", file_id, current_principal().user_id)
    return jsonify({"message": "File deleted successfully"})
