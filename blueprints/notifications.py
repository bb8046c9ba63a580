"""In-app notification routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from database import transaction
from db_stores import NotificationStoreDB, UserStoreDB
from helpers import (
    ApiError,
    arg_bool,
    auth_required,
    current_principal,
    not_found,
    paginate_args,
    paginated_response,
    parse_body,
    teacher_or_admin,
)
from roles import Role
from schemas import NotificationCreate
from tenant import in_tenant

logger = logging.getLogger(__name__)

bp = Blueprint("notifications", __name__)


def _store() -> NotificationStoreDB:
    return NotificationStoreDB(current_principal().user_id)


@bp.route("/api/notifications")
@auth_required
def list_notifications():
    page, limit = paginate_args(default_limit=20)
    items, total = _store().list(
        page, limit,
        unread_only=bool(arg_bool("unreadOnly")),
        notif_type=request.args.get("type") or None,
    )
    return jsonify(paginated_response(items, total, page, limit, key="notifications"))


@bp.route("/api/notifications/unread/count")
@auth_required
def unread_count():
    return jsonify({"unreadCount": _store().unread_count()})


@bp.route("/api/notifications/stats/overview")
@auth_required
def notification_stats():
    return jsonify({"stats": _store().stats()})


@bp.route("/api/notifications/<int:notif_id>")
@auth_required
def get_notification(notif_id):
    store = _store()
    if not store.get(notif_id):
        raise not_found("Notification")
    store.mark_read(notif_id)
    return jsonify({"notification": store.get(notif_id)})


@bp.route("/api/notifications", methods=["POST"])
@teacher_or_admin
def create_notification():
    principal = current_principal()
    body = parse_body(NotificationCreate)

    if body.user_id is not None:
        target = UserStoreDB.get(body.user_id)
        if not target or not target["is_active"] or not in_tenant(target["school_id"]):
            raise ApiError("Target user not found", 404)
        recipients = [target["id"]]
    elif body.user_role is not None or body.school_id is not None:
        school_id = body.school_id
        if principal.role != Role.SUPER_ADMIN.value:
            if principal.school_id is None:
                raise ApiError("Access denied. Insufficient permissions.", 403)
            if school_id is not None and school_id != principal.school_id:
                raise ApiError("Access denied. Insufficient permissions.", 403)
            school_id = principal.school_id
        recipients = UserStoreDB.audience(role=body.user_role, school_id=school_id)
    else:
        raise ApiError("Must specify userId, userRole, or schoolId", 400)

    if not recipients:
        raise ApiError("No target users found", 400)

    with transaction():
        count = NotificationStoreDB.create_bulk(
            recipients, body.title, body.message, body.type, principal.user_id)

    logger.info("Notification '%s' sent to %d users by %d", body.title, count, principal.user_id)
    return jsonify({"message": f"Notification sent to {count} user(s)", "count": count}), 201


@bp.route("/api/notifications/<int:notif_id>/read", methods=["PUT"])
@auth_required
def mark_read(notif_id):
    store = _store()
    if not store.get(notif_id):
        raise not_found("Notification")
    store.mark_read(notif_id)
    return jsonify({"message": "Notification marked as read", "notification": store.get(notif_id)})


@bp.route("/api/notifications/read-all", methods=["PUT"])
@auth_required
def mark_all_read():
    updated = _store().mark_all_read()
    return jsonify({"message": "All notifications marked as read", "count": updated})


@bp.route("/api/notifications/all", methods=["DELETE"])
@auth_required
def delete_all():
    deleted = _store().delete_all()
    return jsonify({"message": "All notifications deleted", "count": deleted})


@bp.route("/api/notifications/<int:notif_id>", methods=["DELETE"])
@auth_required
def delete_notification(notif_id):
    if not _store().delete(notif_id):
        raise not_found("Notification")
    return jsonify({"message": "Notification deleted successfully"})
