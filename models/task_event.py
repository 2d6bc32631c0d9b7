"""Append-only audit trail of task changes."""

from __future__ import annotations

from enum import StrEnum

from database import db
from utils.dates import to_iso, utcnow


class EventType(StrEnum):
    """Kinds of recorded task changes."""

    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    REASSIGNED = "REASSIGNED"


class TaskEvent(db.Model):
    __tablename__ = "task_events"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("task.id"), nullable=False, index=True)
    event_type = db.Column(db.String(32), nullable=False)
    old_status = db.Column(db.String(32), nullable=True)
    new_status = db.Column(db.String(32), nullable=True)
    changed_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    task = db.relationship("Task", back_populates="events")
    changed_by = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "taskId": self.task_id,
            "eventType": self.event_type,
            "oldStatus": self.old_status,
            "newStatus": self.new_status,
            "changedById": self.changed_by_id,
            "changedBy": self.changed_by.to_summary() if self.changed_by else None,
            "createdAt": to_iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<TaskEvent task={self.task_id} type={self.event_type} {self.old_status}->{self.new_status}>"
