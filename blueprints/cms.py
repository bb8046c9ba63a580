"""Content management: premium resources, subscription packages and analytics."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from database import transaction
from db_stores import AnalyticsStoreDB, ContentStoreDB, PackageStoreDB, SchoolStoreDB
from helpers import (
    ApiError,
    admin_only,
    arg_bool,
    arg_int,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
)
from schemas import ContentCreate, ContentUpdate, PackageCreate, SubscriptionCreate
from tenant import in_tenant
from uploads import CONTENT_TYPES, delete_stored, save_upload

logger = logging.getLogger(__name__)

bp = Blueprint("cms", __name__)


def _load_content(content_id: int) -> dict:
    content = ContentStoreDB.get(content_id)
    if not content:
        raise not_found("Content")
    return content


# ── Premium content ────────────────────────────────────────

@bp.route("/api/cms/content", methods=["POST"])
@admin_only
def create_content():
    principal = current_principal()
    body = parse_body(ContentCreate)
    upload = request.files.get("file")
    stored = save_upload(upload, CONTENT_TYPES, subdir="content", field="content") if upload else None

    fields = {**body.model_dump(), "created_by": principal.user_id}
    if stored:
        fields.update({
            "file_path": stored.path,
            "original_name": stored.original_name,
            "mime_type": stored.mime_type,
            "file_size": stored.size,
        })
    try:
        content_id = ContentStoreDB.create(fields)
    except Exception:
        if stored:
            stored.remove()
        raise

    logger.info("Content %d (%s) created by %d", content_id, body.content_type, principal.user_id)
    return jsonify({"message": "Content created successfully",
                    "content": ContentStoreDB.get(content_id)}), 201


@bp.route("/api/cms/content")
@admin_only
def list_content():
    page, limit = paginate_args()
    items, total = ContentStoreDB.list(
        page, limit,
        content_type=request.args.get("contentType") or None,
        class_level=arg_int("classLevel"),
        education_system=request.args.get("educationSystem") or None,
        is_premium=arg_bool("isPremium"),
        search=request.args.get("search"),
    )
    return jsonify(paginated_response(items, total, page, limit, key="content"))


@bp.route("/api/cms/content/<int:content_id>")
@admin_only
def get_content(content_id):
    return jsonify({"content": _load_content(content_id)})


@bp.route("/api/cms/content/<int:content_id>", methods=["PUT"])
@admin_only
def update_content(content_id):
    _load_content(content_id)
    changes = parse_body(ContentUpdate).changes()
    if not changes:
        raise ApiError("No fields to update", 400)
    ContentStoreDB.update(content_id, changes)
    return jsonify({"message": "Content updated successfully",
                    "content": ContentStoreDB.get(content_id)})


@bp.route("/api/cms/content/<int:content_id>", methods=["DELETE"])
@admin_only
def delete_content(content_id):
    content = _load_content(content_id)
    ContentStoreDB.delete(content_id)
    if content["file_path"]:
        delete_stored(content["file_path"])
    return jsonify({"message": "Content deleted successfully"})


# ── Packages and subscriptions ─────────────────────────────

@bp.route("/api/cms/packages", methods=["POST"])
@admin_only
def create_package():
    principal = current_principal()
    body = parse_body(PackageCreate)
    content_ids = list(dict.fromkeys(body.content_ids))

    missing = set(content_ids) - ContentStoreDB.existing_ids(content_ids)
    if missing:
        raise ApiError("Validation failed", 400, [
            {"field": "contentIds", "message": f"Unknown content ids: {', '.join(map(str, sorted(missing)))}"}
        ])

    with transaction():
        package_id = PackageStoreDB.create({
            "name": body.name,
            "description": body.description,
            "price": body.price,
            "duration_days": body.duration_days,
            "created_by": principal.user_id,
        })
        for content_id in content_ids:
            PackageStoreDB.add_content(package_id, content_id)

    logger.info("Package %d created with %d items", package_id, len(content_ids))
    return jsonify({"message": "Package created successfully",
                    "package": PackageStoreDB.get(package_id)}), 201


@bp.route("/api/cms/packages")
@admin_only
def list_packages():
    page, limit = paginate_args()
    items, total = PackageStoreDB.list(page, limit, active_only=bool(arg_bool("activeOnly")))
    return jsonify(paginated_response(items, total, page, limit, key="packages"))


@bp.route("/api/cms/packages/<int:package_id>")
@admin_only
def get_package(package_id):
    package = PackageStoreDB.get(package_id)
    if not package:
        raise not_found("Package")
    return jsonify({"package": package})


@bp.route("/api/cms/subscriptions", methods=["POST"])
@admin_only
def create_subscription():
    body = parse_body(SubscriptionCreate)
    if not in_tenant(body.school_id) or not SchoolStoreDB.exists(body.school_id):
        raise not_found("School")
    package = PackageStoreDB.get(body.package_id)
    if not package:
        raise not_found("Package")
    if not package["is_active"]:
        raise ApiError("Package is not active", 400)

    subscription_id = PackageStoreDB.subscribe(body.school_id, package, body.amount, body.start_date)
    logger.info("School %d subscribed to package %d", body.school_id, body.package_id)
    return jsonify({"message": "Subscription created successfully",
                    "subscriptionId": subscription_id}), 201


@bp.route("/api/cms/analytics")
@admin_only
def analytics():
    period = arg_int("period")
    if period is None:
        period = 30
    if not 1 <= period <= 365:
        raise ApiError("Validation failed", 400,
                       [{"field": "period", "message": "must be between 1 and 365 days"}])
    return jsonify({"analytics": AnalyticsStoreDB.overview(period)})
