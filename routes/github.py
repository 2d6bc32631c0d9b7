"""GitHub integration routes: connection, repositories, sync and webhooks."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from forms import GitHubConnectForm, GitHubSyncForm
from routes import json_error, rate_limited_response, validation_error
from services.github_service import (
    GitHubError,
    GitHubRateLimitError,
    fetch_authenticated_user,
    list_repositories,
    verify_webhook_signature,
)
from services.sync_service import handle_github_webhook, import_github_issues
from services.token_store import (
    PROVIDER_GITHUB,
    IntegrationNotConnected,
    delete_github_token,
    get_github_user_info,
    resolve_token,
    store_github_token,
)

github_bp = Blueprint("github", __name__, url_prefix="/api/github")


def _request_token() -> str:
    """Token attached to the request itself, if any."""
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    return ""


def _invalidate_github(user_id: int) -> None:
    delete_github_token(user_id)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()


def _github_error_response(error: GitHubError):
    status = error.status_code or 502
    if status == 401:
        message = "GitHub authentication failed. Please reconnect your account."
    elif status == 404:
        message = "Requested GitHub resource was not found."
    else:
        logging.error("GitHubError encountered: %s", error, exc_info=True)
        message = f"GitHub API error: {error}"
    return json_error(message, status=status)


@github_bp.route("/connect", methods=["POST"])
def connect():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = GitHubConnectForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form, "Access token is required")

    token = form.accessToken.data.strip()
    try:
        github_user = fetch_authenticated_user(token)
    except GitHubRateLimitError as error:
        return rate_limited_response(error)
    except GitHubError as error:
        if error.status_code in (401, 403):
            return json_error("Invalid GitHub access token", status=400)
        return _github_error_response(error)

    try:
        store_github_token(
            g.user.id,
            token,
            login=github_user["login"],
            avatar_url=github_user.get("avatar_url"),
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error saving GitHub connection: %s", exc, exc_info=True)
        return json_error("Failed to connect GitHub account", status=500)

    return jsonify({"success": True, "githubUser": github_user})


@github_bp.route("/connect", methods=["GET"])
def connection_status():
    if g.user is None:
        return json_error("Unauthorized", status=401)
    info = get_github_user_info(g.user.id)
    if info is None:
        return jsonify({"connected": False, "githubUser": None})
    return jsonify({"connected": True, "githubUser": info})


@github_bp.route("/connect", methods=["DELETE"])
def disconnect():
    if g.user is None:
        return json_error("Unauthorized", status=401)
    try:
        delete_github_token(g.user.id)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Error removing GitHub connection: %s", exc, exc_info=True)
        return json_error("Failed to disconnect GitHub account", status=500)
    return jsonify({"success": True})


@github_bp.route("/repos", methods=["GET"])
def repositories():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    try:
        token = resolve_token(g.user.id, PROVIDER_GITHUB, session_token=_request_token())
    except IntegrationNotConnected as exc:
        return json_error(str(exc), status=400)

    try:
        repos = list_repositories(token)
    except GitHubRateLimitError as error:
        return rate_limited_response(error)
    except GitHubError as error:
        if error.status_code == 401 and not _request_token():
            _invalidate_github(g.user.id)
        return _github_error_response(error)

    return jsonify({"success": True, "repos": [repo.to_dict() for repo in repos]})


@github_bp.route("/sync", methods=["POST"])
def sync():
    if g.user is None:
        return json_error("Unauthorized", status=401)

    form = GitHubSyncForm.from_json(request.get_json(silent=True) or {})
    if not form.validate():
        return validation_error(form, "repoOwner and repoName are required")

    try:
        token = resolve_token(g.user.id, PROVIDER_GITHUB, session_token=_request_token())
    except IntegrationNotConnected as exc:
        return json_error(str(exc), status=400)

    try:
        result = import_github_issues(
            g.user,
            form.repoOwner.data.strip(),
            form.repoName.data.strip(),
            token,
        )
    except GitHubRateLimitError as error:
        return rate_limited_response(error)
    except GitHubError as error:
        return _github_error_response(error)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("GitHub sync error: %s", exc, exc_info=True)
        return json_error("Failed to sync from GitHub", status=500)

    return jsonify(result.to_dict())


@github_bp.route("/webhook", methods=["POST"])
def webhook():
    raw_body = request.get_data()
    signature = request.headers.get("X-Hub-Signature-256")
    if not verify_webhook_signature(current_app.config.get("GITHUB_WEBHOOK_SECRET"), signature, raw_body):
        logging.warning("Rejected GitHub webhook with an invalid signature")
        return json_error("Invalid signature", status=401)

    payload = request.get_json(force=True, silent=True)
    logging.info(
        "GitHub webhook received: event=%s action=%s",
        request.headers.get("X-GitHub-Event", "unknown"),
        payload.get("action") if isinstance(payload, dict) else None,
    )
    try:
        success, message = handle_github_webhook(payload)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("GitHub webhook error: %s", exc, exc_info=True)
        return json_error("Internal server error", status=500)

    if not success:
        return json_error(message or "Invalid payload", status=400)
    body = {"success": True}
    if message:
        body["message"] = message
    return jsonify(body)


@github_bp.route("/webhook", methods=["GET"])
def webhook_ready():
    return jsonify({"status": "webhook ready"})
