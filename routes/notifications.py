"""Notification API routes."""
from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import MarkReadForm
from routes import json_error, validation_error
from services.notification_service import (
    count_unread,
    list_notifications,
    load_notification,
    mark_all_read,
)

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.route("", methods=["GET"])
def list_notifications_json():
    """Return up to 50 recent notifications for the current user."""

    if g.user is None:
        return json_error("Unauthorized", status=401)
    unread_only = request.args.get("unreadOnly", "false").lower() == "true"
    notifications = list_notifications(g.user, unread_only=unread_only)
    return jsonify([notification.to_dict() for notification in notifications])


@notifications_bp.route("/unread-count", methods=["GET"])
def unread_count():
    """Unread badge count; anonymous callers simply get zero."""

    if g.user is None:
        return jsonify({"count": 0})
    try:
        count = count_unread(g.user)
    except SQLAlchemyError as exc:
        logging.error("Unable to count unread notifications: %s", exc, exc_info=True)
        count = 0
    return jsonify({"count": count})


@notifications_bp.route("/mark-read", methods=["POST"])
def mark_read_all():
    if g.user is None:
        return json_error("Unauthorized", status=401)
    try:
        updated = mark_all_read(g.user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Unable to mark notifications read: %s", exc, exc_info=True)
        return json_error("Failed to mark notifications as read", status=500)
    return jsonify({"success": True, "updated": updated})


@notifications_bp.route("/mark-read", methods=["PATCH"])
def mark_read_one():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = MarkReadForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        notification = load_notification(form.notificationId.data, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)

    notification.mark_read()
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Unable to mark notification %s read: %s", notification.id, exc, exc_info=True)
        return json_error("Failed to mark notification as read", status=500)
    return jsonify({"success": True})
