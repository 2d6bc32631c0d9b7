"""A task represents a unit of work tracked by a team

A User creates Tasks and may assign them to another User
A Task moves through OPEN, IN_PROGRESS, READY_FOR_REVIEW and DONE; any jump is allowed
A Task may mirror a GitHub issue; (github_repo, github_issue_number) identifies at most one Task
A Task mirrored from GitHub is never deleted by synchronisation

"""
from __future__ import annotations
from enum import StrEnum
from typing import Optional

import bleach
from database import db
from markdown import markdown as render_markdown
from markupsafe import Markup

from utils.dates import to_iso, utcnow


class TaskStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    READY_FOR_REVIEW = "READY_FOR_REVIEW"
    DONE = "DONE"


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def render_task_description_html(description: Optional[str]) -> Markup:
    """Render task description Markdown into sanitized HTML."""
    if not description:
        return Markup("")
    html = render_markdown(
        description,
        extensions=["extra", "sane_lists", "codehilite"],
        output_format="html5",
        tab_length=2,
    )
    allowed_tags = list(bleach.sanitizer.ALLOWED_TAGS) + [
        "p",
        "pre",
        "code",
        "ul",
        "ol",
        "li",
        "table",
        "thead",
        "tbody",
        "tr",
        "th",
        "td",
        "div",
        "span",
        "blockquote",
        "br",
        "h1",
        "h2",
        "h3",
        "h4",
        "hr",
    ]
    allowed_attributes = {
        **bleach.sanitizer.ALLOWED_ATTRIBUTES,
        "a": ["href", "title", "rel"],
        "code": ["class"],
    }
    sanitized_html = bleach.clean(html, tags=allowed_tags, attributes=allowed_attributes)
    return Markup(sanitized_html)


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(32), nullable=False, default=TaskStatus.OPEN.value, index=True)
    priority = db.Column(db.String(16), nullable=False, default=TaskPriority.MEDIUM.value)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    assigned_to_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    due_date = db.Column(db.DateTime, nullable=True)

    # External reference to a GitHub issue ("owner/name" + issue number)
    github_repo = db.Column(db.String(255), nullable=True)
    github_issue_number = db.Column(db.Integer, nullable=True)
    github_issue_url = db.Column(db.String(512), nullable=True)
    github_pr_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    created_by = db.relationship("User", back_populates="created_tasks", foreign_keys=[created_by_id])
    assignee = db.relationship("User", back_populates="assigned_tasks", foreign_keys=[assigned_to_id])
    events = db.relationship(
        "TaskEvent",
        back_populates="task",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="TaskEvent.id.desc()",
    )
    notifications = db.relationship(
        "Notification",
        back_populates="task",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("github_repo", "github_issue_number", name="uq_task_github_issue"),
    )

    @property
    def description_html(self):
        return render_task_description_html(self.description)

    def is_visible_to(self, user) -> bool:
        if user is None:
            return False
        return user.id in (self.created_by_id, self.assigned_to_id)

    def to_summary(self) -> dict[str, object]:
        """Minimal task fields embedded in notifications."""

        return {"id": self.id, "title": self.title, "status": self.status}

    def to_dict(self, *, include_events: bool = False) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dueDate": to_iso(self.due_date),
            "createdById": self.created_by_id,
            "assignedTo": self.assigned_to_id,
            "createdBy": self.created_by.to_summary() if self.created_by else None,
            "assignedToUser": self.assignee.to_summary() if self.assignee else None,
            "githubRepo": self.github_repo,
            "githubIssueNumber": self.github_issue_number,
            "githubIssueUrl": self.github_issue_url,
            "githubPrUrl": self.github_pr_url,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }
        if include_events:
            payload["descriptionHtml"] = str(self.description_html)
            payload["events"] = [event.to_dict() for event in self.events.limit(50)]
        return payload

    def __repr__(self):
        return f"<Task {self.title}>"
