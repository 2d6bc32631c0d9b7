"""User directory used by assignee pickers."""
from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from database import db
from forms import UserSearchForm
from models.user import User
from routes import json_error, validation_error

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.route("", methods=["GET"])
def list_users():
    """Page through users ordered by email, optionally filtered by email or name."""

    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = UserSearchForm.from_json(request.args.to_dict())
    if not form.validate():
        return validation_error(form)

    query = User.query
    search = (form.search.data or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    page = query.order_by(User.email).paginate(
        page=form.page.data or 1,
        per_page=form.pageSize.data or 50,
        error_out=False,
    )
    return jsonify(
        {
            "users": [user.to_summary() for user in page.items],
            "total": page.total,
            "page": page.page,
            "pageSize": page.per_page,
            "totalPages": page.pages,
        }
    )
