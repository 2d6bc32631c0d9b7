"""Notification models for user-facing alerts."""
from __future__ import annotations

from database import db
from utils.dates import to_iso, utcnow


class Notification(db.Model):
    """Persisted message for a user, usually about a task."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=True, index=True)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User", back_populates="notifications")
    task = db.relationship("Task", back_populates="notifications")

    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "read"),
    )

    def mark_read(self) -> None:
        """Record that the notification has been seen."""

        self.read = True

    def to_dict(self) -> dict[str, object]:
        """Return a serialized representation of the notification."""

        return {
            "id": self.id,
            "userId": self.user_id,
            "taskId": self.task_id,
            "message": self.message,
            "read": self.read,
            "createdAt": to_iso(self.created_at),
            "task": self.task.to_summary() if self.task else None,
        }
