"""Shared helpers for route blueprints."""

from __future__ import annotations

from flask import Response, jsonify

__all__ = ["as_response", "json_error", "rate_limited_response", "validation_error"]


def json_error(message: str, *, status: int = 400, **extra):
    """Return a JSON error response."""
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status


def validation_error(form, message: str = "Invalid input."):
    """Return a 400 response carrying the form's field-level errors."""
    return json_error(message, status=400, fieldErrors=form.errors)


def rate_limited_response(error):
    """Translate a GitHub rate-limit error into a 429 with the absolute reset time."""
    return json_error(str(error), status=429, resetAt=error.reset_at_iso)


def as_response(result):
    """Pass Flask responses through untouched and wrap anything else as JSON."""
    if isinstance(result, Response):
        return result
    return jsonify(result)
