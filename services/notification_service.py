"""Utilities for creating and presenting user notifications."""
from __future__ import annotations

from typing import Optional

from database import db
from models.notification import Notification
from models.task import Task
from models.user import User

MAX_NOTIFICATIONS = 50


def create_task_notification(user_id: int, task: Optional[Task], message: str) -> Notification:
    """Queue a notification for ``user_id``. The caller commits."""

    notification = Notification(
        user_id=user_id,
        task=task,
        message=message,
        read=False,
    )
    db.session.add(notification)
    return notification


def list_notifications(user: User, *, unread_only: bool = False, limit: int = MAX_NOTIFICATIONS) -> list[Notification]:
    """Return the user's most recent notifications, newest first."""

    query = Notification.query.filter_by(user_id=user.id)
    if unread_only:
        query = query.filter_by(read=False)
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def count_unread(user: Optional[User]) -> int:
    if user is None:
        return 0
    return Notification.query.filter_by(user_id=user.id, read=False).count()


def load_notification(notification_id: int, user: User) -> Notification:
    """Return a notification owned by ``user``.

    Raises ``LookupError`` when it does not exist and ``PermissionError`` when
    it belongs to someone else.
    """
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        raise LookupError("Notification not found")
    if notification.user_id != user.id:
        raise PermissionError("You do not have access to that notification.")
    return notification


def mark_all_read(user: User) -> int:
    """Flag every unread notification for ``user`` as read and return how many changed."""

    return (
        Notification.query.filter_by(user_id=user.id, read=False)
        .update({Notification.read: True}, synchronize_session=False)
    )
