"""Reconcile GitHub issues into local tasks.

Each fetched issue is upserted on its ``(github_repo, github_issue_number)``
key and committed on its own, so one bad record never aborts the batch.
Status transitions are handed to the event emitter after the commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from database import db
from models.task import Task, TaskPriority, TaskStatus
from models.user import User
from services.event_service import emit_status_change, emit_task_created
from services.github_service import GitHubIssue, list_issues


@dataclass
class SyncResult:
    created: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": True,
            "created": self.created,
            "updated": self.updated,
            "errors": list(self.errors),
        }


def map_issue_state_to_status(state: Optional[str], current: Optional[str] = None) -> str:
    """Closed issues are DONE; open issues keep local progress unless reopened."""

    if state == "closed":
        return TaskStatus.DONE.value
    if current and current != TaskStatus.DONE.value:
        return current
    return TaskStatus.OPEN.value


def map_labels_to_priority(labels: Iterable[str]) -> str:
    names = [label.lower() for label in labels if label]
    if any("critical" in name or "urgent" in name for name in names):
        return TaskPriority.HIGH.value
    if any("low" in name for name in names):
        return TaskPriority.LOW.value
    return TaskPriority.MEDIUM.value


def _validated_issue(issue: GitHubIssue) -> tuple[int, str]:
    number = issue.number
    if isinstance(number, bool) or not isinstance(number, int) or number <= 0:
        raise ValueError("issue number is missing or invalid")
    title = issue.title
    if not isinstance(title, str) or not title.strip():
        raise ValueError("title is required")
    return number, title.strip()[:255]


def _find_task(repo_full_name: str, number: int) -> Optional[Task]:
    return Task.query.filter_by(github_repo=repo_full_name, github_issue_number=number).one_or_none()


def _apply_issue(task: Task, issue: GitHubIssue, title: str) -> None:
    task.title = title
    task.description = issue.body or ""
    task.status = map_issue_state_to_status(issue.state, task.status)
    task.priority = map_labels_to_priority(issue.labels)
    task.github_issue_url = issue.html_url


def _upsert_issue(user: User, repo_full_name: str, issue: GitHubIssue) -> tuple[Task, bool, Optional[str]]:
    """Create or update the task for ``issue`` and commit it.

    Returns ``(task, created, previous_status)``.
    """
    number, title = _validated_issue(issue)
    task = _find_task(repo_full_name, number)
    if task is not None:
        previous_status = task.status
        _apply_issue(task, issue, title)
        db.session.commit()
        return task, False, previous_status

    task = Task(
        created_by_id=user.id,
        github_repo=repo_full_name,
        github_issue_number=number,
    )
    _apply_issue(task, issue, title)
    db.session.add(task)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent sync inserted the same issue first; fall back to updating it.
        db.session.rollback()
        task = _find_task(repo_full_name, number)
        if task is None:
            raise
        previous_status = task.status
        _apply_issue(task, issue, title)
        db.session.commit()
        return task, False, previous_status
    return task, True, None


def reconcile_issues(user: User, repo_full_name: str, issues: Iterable[GitHubIssue]) -> SyncResult:
    result = SyncResult()
    for issue in issues:
        if issue.is_pull_request:
            continue
        try:
            task, created, previous_status = _upsert_issue(user, repo_full_name, issue)
        except (ValueError, TypeError, SQLAlchemyError) as exc:
            db.session.rollback()
            message = f"Failed to sync issue #{issue.number}: {exc}"
            logging.warning(message)
            result.errors.append(message)
            continue

        if created:
            result.created += 1
            emit_task_created(task, user)
        else:
            result.updated += 1
            if previous_status != task.status:
                emit_status_change(task, previous_status, task.status, user)
    return result


def import_github_issues(user: User, repo_owner: str, repo_name: str, token: str) -> SyncResult:
    """Fetch the repository's issues and reconcile them.

    Upstream failures (including rate limiting) propagate to the caller.
    """
    issues = list_issues(token, repo_owner, repo_name)
    repo_full_name = f"{repo_owner}/{repo_name}"
    result = reconcile_issues(user, repo_full_name, issues)
    logging.info(
        "GitHub sync for %s by user %s: %s created, %s updated, %s errors",
        repo_full_name,
        user.id,
        result.created,
        result.updated,
        len(result.errors),
    )
    return result


def _set_status_from_webhook(task: Task, status: str) -> Optional[str]:
    if task.status == status:
        return None
    previous_status = task.status
    task.status = status
    db.session.commit()
    emit_status_change(task, previous_status, status, task.created_by)
    return f"Task {task.id} marked as {status.lower()}"


def handle_github_webhook(payload: Any) -> tuple[bool, Optional[str]]:
    """Apply an issue or pull request webhook delivery to linked tasks."""

    if not isinstance(payload, Mapping):
        return False, "Invalid payload"

    action = payload.get("action")
    repository = payload.get("repository") or {}
    repo_full_name = repository.get("full_name")

    issue = payload.get("issue")
    if isinstance(issue, Mapping) and action in ("closed", "reopened"):
        task = None
        if repo_full_name and issue.get("number") is not None:
            task = _find_task(repo_full_name, issue.get("number"))
        if task is None and issue.get("html_url"):
            task = Task.query.filter_by(github_issue_url=issue.get("html_url")).first()
        if task is None:
            return True, None
        status = TaskStatus.DONE.value if action == "closed" else TaskStatus.OPEN.value
        return True, _set_status_from_webhook(task, status)

    pull_request = payload.get("pull_request")
    if isinstance(pull_request, Mapping) and action == "closed" and pull_request.get("merged"):
        task = Task.query.filter_by(github_pr_url=pull_request.get("html_url")).first()
        if task is None:
            return True, None
        return True, _set_status_from_webhook(task, TaskStatus.DONE.value)

    return True, None
