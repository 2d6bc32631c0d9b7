"""Task counts for the analytics dashboard.

Every aggregate covers only tasks the user created or is assigned to, and
optionally only tasks created since the start of a preset range.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from database import db
from models.task import Task
from models.user import User
from utils.dates import utcnow

DEFAULT_RANGE = "last_30_days"
DATE_RANGES = ("today", "last_7_days", "last_30_days", "last_90_days", "all_time")


def range_start(preset: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Earliest ``created_at`` included by ``preset``; ``None`` means no lower bound.

    A month counts as 30 days and ``today`` starts at UTC midnight.
    """
    now = now or utcnow()
    if preset == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if preset == "last_7_days":
        return now - timedelta(days=7)
    if preset == "last_30_days":
        return now - timedelta(days=30)
    if preset == "last_90_days":
        return now - timedelta(days=90)
    return None


def resolve_range(raw: Optional[str]) -> str:
    return raw if raw in DATE_RANGES else DEFAULT_RANGE


def _scoped(query, user: User, preset: str):
    query = query.filter(db.or_(Task.created_by_id == user.id, Task.assigned_to_id == user.id))
    start = range_start(preset)
    if start is not None:
        query = query.filter(Task.created_at >= start)
    return query


def _count_by(column, user: User, preset: str) -> dict:
    query = _scoped(db.session.query(column, db.func.count(Task.id)), user, preset)
    return dict(query.group_by(column).all())


def status_distribution(user: User, preset: str) -> list[dict[str, object]]:
    counts = _count_by(Task.status, user, preset)
    return [{"status": status, "count": count} for status, count in sorted(counts.items())]


def priority_distribution(user: User, preset: str) -> list[dict[str, object]]:
    counts = _count_by(Task.priority, user, preset)
    return [{"priority": priority, "count": count} for priority, count in sorted(counts.items())]


def _emails(user_ids) -> dict[int, str]:
    if not user_ids:
        return {}
    rows = db.session.query(User.id, User.email).filter(User.id.in_(list(user_ids))).all()
    return dict(rows)


def tasks_per_user(user: User, preset: str) -> list[dict[str, object]]:
    """Visible task counts per assignee, busiest first. Unassigned tasks are left out."""

    counts = _count_by(Task.assigned_to_id, user, preset)
    counts.pop(None, None)
    emails = _emails(counts.keys())
    rows = [{"email": emails.get(user_id, "Unknown"), "count": count} for user_id, count in counts.items()]
    return sorted(rows, key=lambda row: (-row["count"], row["email"]))


def workload_balance(user: User, preset: str) -> list[dict[str, object]]:
    """Assigned versus created counts per user, ordered by their total."""

    assigned = _count_by(Task.assigned_to_id, user, preset)
    assigned.pop(None, None)
    created = _count_by(Task.created_by_id, user, preset)
    emails = _emails(set(assigned) | set(created))
    rows = [
        {
            "email": emails.get(user_id, "Unknown"),
            "assigned": assigned.get(user_id, 0),
            "created": created.get(user_id, 0),
        }
        for user_id in set(assigned) | set(created)
    ]
    return sorted(rows, key=lambda row: (-(row["assigned"] + row["created"]), row["email"]))
