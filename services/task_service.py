"""Helpers for querying and mutating tasks on behalf of a user."""

from __future__ import annotations

from database import db
from models.task import Task, TaskPriority, TaskStatus
from models.task_event import EventType
from models.user import User
from services.event_service import record_task_event
from services.notification_service import create_task_notification
from utils.dates import parse_iso


def visible_tasks(user: User, status: str | None = None) -> list[Task]:
    """Tasks the user created or is assigned to, newest first."""

    query = Task.query.filter(
        db.or_(Task.created_by_id == user.id, Task.assigned_to_id == user.id)
    )
    if status:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def load_task(task_id: int, user: User) -> Task:
    """Return a task the user may see.

    Raises ``LookupError`` when it does not exist and ``PermissionError`` when
    the user is neither its creator nor its assignee.
    """
    task = db.session.get(Task, task_id)
    if task is None:
        raise LookupError("Task not found")
    if not task.is_visible_to(user):
        raise PermissionError("You do not have access to this task.")
    return task


def create_task(
    user: User,
    *,
    title: str,
    description: str | None = None,
    priority: str = TaskPriority.MEDIUM.value,
    status: str = TaskStatus.OPEN.value,
    assigned_to_id: int | None = None,
    due_date: str | None = None,
) -> Task:
    """Add a task with its CREATED event and assignee notification. The caller commits."""

    task = Task(
        title=title.strip(),
        description=description or None,
        priority=priority,
        status=status,
        created_by_id=user.id,
        assigned_to_id=assigned_to_id,
        due_date=parse_iso(due_date) if due_date else None,
    )
    db.session.add(task)
    db.session.flush()
    record_task_event(task, EventType.CREATED, user.id, new_status=task.status)
    if assigned_to_id and assigned_to_id != user.id:
        create_task_notification(assigned_to_id, task, f"You were assigned to '{task.title}'")
    return task


def change_task_status(task: Task, status: str) -> str | None:
    """Set the task status and return the previous one. The caller commits."""

    previous_status = task.status
    task.status = status
    return previous_status


def change_task_priority(task: Task, priority: str, actor: User) -> bool:
    """Set the priority, recording PRIORITY_CHANGED when it differs. The caller commits."""

    if task.priority == priority:
        return False
    task.priority = priority
    record_task_event(task, EventType.PRIORITY_CHANGED, actor.id)
    return True


def reassign_task(task: Task, assignee_id: int | None, actor: User) -> bool:
    """Move the task to ``assignee_id`` (``None`` unassigns). The caller commits.

    The new assignee is notified unless they made the change themselves.
    """
    if task.assigned_to_id == assignee_id:
        return False
    task.assigned_to_id = assignee_id
    record_task_event(task, EventType.REASSIGNED, actor.id)
    if assignee_id and assignee_id != actor.id:
        create_task_notification(assignee_id, task, f"{actor.name} assigned you a task: {task.title}")
    return True


def bulk_update(
    user: User,
    task_ids: list[int],
    action: str,
    *,
    status: str | None = None,
    priority: str | None = None,
    assigned_to_id: int | None = None,
) -> tuple[int, list[tuple[Task, str]]]:
    """Apply one action to every task in ``task_ids``. The caller commits.

    Returns the number of affected tasks and, for status changes, the
    ``(task, previous_status)`` pairs that actually moved so the caller can
    emit their events after committing.

    Raises ``PermissionError`` unless every task exists and is visible to the
    user (deleting further requires being the creator), and ``LookupError``
    when reassigning to an unknown user.
    """
    tasks = Task.query.filter(Task.id.in_(task_ids)).all()
    if len(tasks) != len(set(task_ids)) or not all(task.is_visible_to(user) for task in tasks):
        raise PermissionError("Some tasks not found or access denied")

    moved: list[tuple[Task, str]] = []
    if action == "delete":
        if any(task.created_by_id != user.id for task in tasks):
            raise PermissionError("Only the task creator can delete it.")
        for task in tasks:
            db.session.delete(task)
    elif action == "changeStatus":
        for task in tasks:
            previous_status = change_task_status(task, status)
            if previous_status != status:
                moved.append((task, previous_status))
    elif action == "changePriority":
        for task in tasks:
            change_task_priority(task, priority, user)
    elif action == "reassign":
        if assigned_to_id is not None and db.session.get(User, assigned_to_id) is None:
            raise LookupError("Assignee not found")
        for task in tasks:
            reassign_task(task, assigned_to_id, user)
    else:
        raise ValueError(f"Unknown bulk action: {action}")
    return len(tasks), moved
