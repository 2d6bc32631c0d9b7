"""Task API routes."""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import (
    STATUS_CHOICES,
    TaskBulkForm,
    TaskCreateForm,
    TaskPriorityForm,
    TaskReassignForm,
    TaskStatusForm,
)
from routes import json_error, validation_error
from services.event_service import emit_status_change
from services.task_service import (
    bulk_update,
    change_task_priority,
    change_task_status,
    create_task,
    load_task,
    reassign_task,
    visible_tasks,
)

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")

VALID_STATUSES = {value for value, _ in STATUS_CHOICES}


@tasks_bp.route("", methods=["GET"])
def list_tasks():
    if g.user is None:
        return json_error("Unauthorized", status=401)
    status = request.args.get("status")
    if status and status not in VALID_STATUSES:
        return json_error("Invalid status filter", status=400)
    tasks = visible_tasks(g.user, status)
    return jsonify({"success": True, "data": [task.to_dict() for task in tasks]})


@tasks_bp.route("/create", methods=["POST"])
def create():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = TaskCreateForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        task = create_task(
            g.user,
            title=form.title.data,
            description=form.description.data,
            priority=form.priority.data,
            status=form.status.data,
            assigned_to_id=form.assignedTo.data,
            due_date=form.dueDate.data,
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error creating task: %s", exc, exc_info=True)
        return json_error("Failed to create task", status=500)

    return jsonify({"success": True, "data": task.to_dict()}), 201


@tasks_bp.route("/<int:task_id>", methods=["GET"])
def detail(task_id):
    if g.user is None:
        return json_error("Unauthorized", status=401)
    try:
        task = load_task(task_id, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)
    return jsonify({"success": True, "data": task.to_dict(include_events=True)})


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
def delete(task_id):
    if g.user is None:
        return json_error("Unauthorized", status=401)
    try:
        task = load_task(task_id, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)
    if task.created_by_id != g.user.id:
        return json_error("Only the task creator can delete it.", status=403)

    try:
        db.session.delete(task)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error deleting task %s: %s", task_id, exc, exc_info=True)
        return json_error("Failed to delete task", status=500)
    return jsonify({"success": True})


@tasks_bp.route("/update-status", methods=["POST"])
def update_status():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = TaskStatusForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        task = load_task(form.taskId.data, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)

    previous_status = change_task_status(task, form.status.data)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error updating task %s status: %s", task.id, exc, exc_info=True)
        return json_error("Failed to update task status", status=500)

    emit_status_change(task, previous_status, task.status, g.user)
    return jsonify({"success": True, "data": task.to_dict()})


@tasks_bp.route("/update-priority", methods=["POST"])
def update_priority():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = TaskPriorityForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        task = load_task(form.taskId.data, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)

    try:
        change_task_priority(task, form.priority.data, g.user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error updating task %s priority: %s", task.id, exc, exc_info=True)
        return json_error("Failed to update task priority", status=500)
    return jsonify({"success": True, "data": task.to_dict()})


@tasks_bp.route("/reassign", methods=["POST"])
def reassign():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = TaskReassignForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        task = load_task(form.taskId.data, g.user)
    except LookupError as exc:
        return json_error(str(exc), status=404)
    except PermissionError as exc:
        return json_error(str(exc), status=403)

    try:
        reassign_task(task, form.assignedTo.data, g.user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error reassigning task %s: %s", task.id, exc, exc_info=True)
        return json_error("Failed to reassign task", status=500)
    return jsonify({"success": True, "data": task.to_dict()})


@tasks_bp.route("/bulk", methods=["POST"])
def bulk():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = TaskBulkForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form)

    try:
        affected, moved = bulk_update(
            g.user,
            form.task_ids,
            form.action.data,
            status=form.status.data,
            priority=form.priority.data,
            assigned_to_id=form.assignedTo.data,
        )
        db.session.commit()
    except PermissionError as exc:
        db.session.rollback()
        return json_error(str(exc), status=403)
    except LookupError as exc:
        db.session.rollback()
        return json_error(str(exc), status=404)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error applying bulk %s: %s", form.action.data, exc, exc_info=True)
        return json_error("Failed to update tasks", status=500)

    for task, previous_status in moved:
        emit_status_change(task, previous_status, task.status, g.user)
    return jsonify({"success": True, "affected": affected})
