"""Slack installation and event routes."""

from __future__ import annotations

import json
import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, g, jsonify, redirect, request
from sqlalchemy.exc import SQLAlchemyError

from database import db
from routes import as_response, json_error
from services.slack_service import SlackOAuthError, verify_slack_request

slack_bp = Blueprint("slack", __name__, url_prefix="/api/slack")

BRIEF_COMMAND = "/taskflow-brief"


def _installer():
    return current_app.extensions["slack_installer"]


def _settings_redirect(**params):
    path = current_app.config.get("SLACK_SETTINGS_PATH", "/settings/slack")
    return redirect(f"{path}?{urlencode(params)}")


def _start_install(direct: bool):
    installer = _installer()
    if not installer.is_configured:
        return json_error("Slack not configured", status=500)
    if g.user is None:
        if not direct:
            return json_error("Unauthorized", status=401)
        login_path = current_app.config.get("LOGIN_PATH", "/login")
        settings_path = current_app.config.get("SLACK_SETTINGS_PATH", "/settings/slack")
        return redirect(f"{login_path}?{urlencode({'redirect': settings_path})}")
    return as_response(installer.handle_install(g.user.id, direct=direct))


@slack_bp.route("/install", methods=["GET"])
def install():
    return _start_install(direct=True)


@slack_bp.route("/install", methods=["POST"])
def install_url():
    return _start_install(direct=False)


@slack_bp.route("/install/callback", methods=["GET"])
def install_callback():
    denied = request.args.get("error")
    if denied:
        logging.warning("Slack OAuth denied by user: %s", denied)
        return _settings_redirect(error="denied")

    try:
        installation = _installer().complete_installation(
            request.args.get("code"), request.args.get("state")
        )
        db.session.commit()
    except SlackOAuthError as exc:
        db.session.rollback()
        logging.warning("Slack OAuth callback rejected: %s", exc)
        return _settings_redirect(error=exc.code)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logging.error("Slack OAuth callback error: %s", exc, exc_info=True)
        return _settings_redirect(error="server_error")

    logging.info("Slack workspace %s installed by user %s", installation.team_id, installation.user_id)
    return _settings_redirect(installed="true")


def _handle_interaction(raw_payload: str):
    try:
        data = json.loads(raw_payload)
    except ValueError as exc:
        logging.error("Error parsing Slack interaction payload: %s", exc)
        return "OK", 200
    if isinstance(data, dict) and data.get("type") == "block_actions":
        actions = data.get("actions") or []
        action_id = actions[0].get("action_id") if actions and isinstance(actions[0], dict) else None
        # open_task buttons carry a URL and are opened by the Slack client.
        logging.info("Slack block action received: %s", action_id)
    return "OK", 200


@slack_bp.route("/events", methods=["POST"])
def events():
    raw_body = request.get_data()
    valid, reason = verify_slack_request(
        current_app.config.get("SLACK_SIGNING_SECRET"), raw_body, request.headers
    )
    if not valid:
        logging.warning("Rejected Slack request: %s", reason)
        return reason or "Invalid signature", 401

    if request.is_json:
        event_data = request.get_json(silent=True) or {}
        event_type = event_data.get("type")
        if event_type == "url_verification" and event_data.get("challenge"):
            return jsonify({"challenge": event_data["challenge"]})
        if event_type == "event_callback":
            event = event_data.get("event") or {}
            logging.info("Slack event received: %s", event.get("type"))
        return "OK", 200

    payload = request.form.get("payload")
    if payload:
        return _handle_interaction(payload)

    if request.form.get("command") == BRIEF_COMMAND:
        return jsonify({"text": "Generating your Shift Brief...", "response_type": "in_channel"})

    return "OK", 200
