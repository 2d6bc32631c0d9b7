"""Analytics API routes."""
from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from routes import json_error
from services.analytics_service import (
    priority_distribution,
    resolve_range,
    status_distribution,
    tasks_per_user,
    workload_balance,
)

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")

REPORTS = {
    "status-distribution": status_distribution,
    "priority-distribution": priority_distribution,
    "tasks-per-user": tasks_per_user,
    "workload-balance": workload_balance,
}


@analytics_bp.route("/<report>", methods=["GET"])
def report(report):
    """Aggregated counts over the caller's tasks; ``range`` falls back to the last 30 days."""

    if g.user is None:
        return json_error("Unauthorized", status=401)
    build = REPORTS.get(report)
    if build is None:
        return json_error("Unknown report", status=404)
    preset = resolve_range(request.args.get("range"))
    try:
        data = build(g.user, preset)
    except SQLAlchemyError as exc:
        logging.error("Unable to build %s report: %s", report, exc, exc_info=True)
        return json_error("Failed to load analytics", status=500)
    return jsonify(data)
