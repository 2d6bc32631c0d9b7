"""Audit events and follow-up notifications for task mutations.

``record_*`` helpers only add rows to the session. ``emit_*`` helpers are used
after the task change itself has been committed: they commit their own rows,
and a failure is logged and swallowed so it never fails the caller.
"""

from __future__ import annotations

import logging
from typing import Optional

from slack_sdk.errors import SlackApiError
from sqlalchemy.exc import SQLAlchemyError

from database import db
from models.task import Task
from models.task_event import EventType, TaskEvent
from models.user import User
from services.notification_service import create_task_notification
from services.token_store import TokenDecryptionError


def record_task_event(
    task: Task,
    event_type: EventType,
    actor_id: Optional[int],
    *,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
) -> TaskEvent:
    event = TaskEvent(
        task_id=task.id,
        event_type=event_type.value,
        old_status=old_status,
        new_status=new_status,
        changed_by_id=actor_id,
    )
    db.session.add(event)
    return event


def _notify_assignee(task: Task, actor_id: Optional[int], message: str) -> None:
    if task.assigned_to_id and task.assigned_to_id != actor_id:
        create_task_notification(task.assigned_to_id, task, message)


def _notify_slack(task: Task, actor_id: Optional[int]) -> None:
    # Imported lazily; slack_service depends on the Flask app configuration.
    from services.slack_service import notify_task_status

    if actor_id is None:
        return
    try:
        notify_task_status(actor_id, task)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Unable to load Slack installations for task %s: %s", task.id, exc, exc_info=True)
    except (SlackApiError, TokenDecryptionError, OSError) as exc:
        # OSError covers transport failures (URLError) once slack_sdk gives up retrying.
        logging.error("Unable to post task %s status to Slack: %s", task.id, exc, exc_info=True)


def emit_task_created(task: Task, actor: Optional[User]) -> bool:
    actor_id = actor.id if actor else None
    try:
        record_task_event(task, EventType.CREATED, actor_id, new_status=task.status)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Unable to record creation event for task %s: %s", task.id, exc, exc_info=True)
        return False
    return True


def emit_status_change(task: Task, old_status: Optional[str], new_status: str, actor: Optional[User]) -> bool:
    """Record one STATUS_CHANGED event for an observed transition.

    Returns ``False`` when the event could not be stored. Unchanged statuses
    record nothing.
    """
    if old_status == new_status:
        return False
    actor_id = actor.id if actor else None
    try:
        record_task_event(
            task,
            EventType.STATUS_CHANGED,
            actor_id,
            old_status=old_status,
            new_status=new_status,
        )
        _notify_assignee(task, actor_id, f"Task '{task.title}' moved from {old_status} to {new_status}")
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Unable to record status change for task %s: %s", task.id, exc, exc_info=True)
        return False
    _notify_slack(task, actor_id)
    return True
