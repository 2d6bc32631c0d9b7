"""Slack OAuth installation, workspace clients and task messages."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Callable, Dict, Mapping, Optional

from flask import current_app, redirect
from itsdangerous import BadSignature, URLSafeTimedSerializer
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from slack_sdk.oauth import AuthorizeUrlGenerator
from slack_sdk.signature import SignatureVerifier

from database import db
from models.slack_installation import SlackInstallation
from models.task import Task
from services.token_store import decrypt_token, encrypt_token
from utils.dates import to_iso

STATE_MAX_AGE_SECONDS = 10 * 60
STATE_SALT = "taskflow-slack-oauth-state"

_clients: Dict[str, WebClient] = {}


class SlackOAuthError(RuntimeError):
    """Raised when an installation callback cannot be completed."""

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


class SlackInstaller:
    """OAuth installer configuration, built once per application."""

    def __init__(
        self,
        *,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: str,
        secret_key: Any,
        scopes: list[str],
        user_scopes: Optional[list[str]] = None,
        state_max_age: int = STATE_MAX_AGE_SECONDS,
        client_factory: Callable[[], WebClient] = WebClient,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.user_scopes = user_scopes or []
        self.state_max_age = state_max_age
        self.client_factory = client_factory
        self._serializer = URLSafeTimedSerializer(secret_key, salt=STATE_SALT)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SlackInstaller":
        app_url = (config.get("APP_URL") or "").rstrip("/")
        scopes = [scope.strip() for scope in (config.get("SLACK_SCOPES") or "").split(",") if scope.strip()]
        return cls(
            client_id=config.get("SLACK_CLIENT_ID"),
            client_secret=config.get("SLACK_CLIENT_SECRET"),
            redirect_uri=f"{app_url}/api/slack/install/callback",
            secret_key=config.get("SECRET_KEY"),
            scopes=scopes,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def generate_state(self, user_id: int) -> str:
        return self._serializer.dumps({"user_id": user_id, "nonce": secrets.token_hex(16)})

    def verify_state(self, state: Optional[str]) -> Optional[int]:
        """Return the user id carried by ``state``, or ``None`` when invalid or expired."""

        if not state:
            return None
        try:
            data = self._serializer.loads(state, max_age=self.state_max_age)
        except BadSignature:
            return None
        if not isinstance(data, dict):
            return None
        return data.get("user_id")

    def authorize_url(self, user_id: int) -> str:
        generator = AuthorizeUrlGenerator(
            client_id=self.client_id,
            scopes=self.scopes,
            user_scopes=self.user_scopes,
            redirect_uri=self.redirect_uri,
        )
        return generator.generate(self.generate_state(user_id))

    def handle_install(self, user_id: int, *, direct: bool = True):
        """Start an installation: a redirect for browsers, or the URL for API callers."""

        url = self.authorize_url(user_id)
        if direct:
            return redirect(url)
        return {"success": True, "url": url}

    def complete_installation(self, code: Optional[str], state: Optional[str]) -> SlackInstallation:
        """Exchange the callback code for tokens and store the installation.

        The caller commits.
        """
        if not code:
            raise SlackOAuthError("no_code")
        user_id = self.verify_state(state)
        if user_id is None:
            raise SlackOAuthError("invalid_state")

        client = self.client_factory()
        try:
            response = client.oauth_v2_access(
                client_id=self.client_id,
                client_secret=self.client_secret,
                code=code,
                redirect_uri=self.redirect_uri,
            )
        except SlackApiError as exc:
            logging.error("Slack OAuth exchange failed: %s", exc.response.get("error") if exc.response else exc)
            raise SlackOAuthError("oauth_failed") from exc
        if not response.get("ok", False):
            logging.error("Slack OAuth exchange failed: %s", response.get("error"))
            raise SlackOAuthError("oauth_failed")

        installation = save_installation(user_id, response)
        clear_slack_client(installation.team_id)
        return installation


def save_installation(user_id: int, oauth_response: Mapping[str, Any]) -> SlackInstallation:
    """Upsert an installation keyed by team id, encrypting its tokens."""

    team = oauth_response.get("team") or {}
    team_id = team.get("id")
    if not team_id:
        raise SlackOAuthError("oauth_failed", "Slack response did not include a team id")
    bot_token = oauth_response.get("access_token") or (oauth_response.get("bot") or {}).get("token")
    if not bot_token:
        raise SlackOAuthError("oauth_failed", "Slack response did not include a bot token")
    authed_user = oauth_response.get("authed_user") or {}
    user_token = authed_user.get("access_token")
    enterprise = oauth_response.get("enterprise") or {}
    webhook = oauth_response.get("incoming_webhook") or {}

    installation = SlackInstallation.query.filter_by(team_id=team_id).one_or_none()
    if installation is None:
        installation = SlackInstallation(team_id=team_id)
        db.session.add(installation)
    installation.team_name = team.get("name")
    installation.enterprise_id = enterprise.get("id")
    installation.user_id = user_id
    installation.slack_user_id = authed_user.get("id")
    installation.bot_access_token_encrypted = encrypt_token(bot_token)
    installation.access_token_encrypted = encrypt_token(user_token) if user_token else None
    installation.scope = oauth_response.get("scope") or ""
    installation.incoming_webhook_channel_id = webhook.get("channel_id")
    return installation


def get_slack_client(team_id: str, bot_token: str) -> WebClient:
    client = _clients.get(team_id)
    if client is None:
        client = WebClient(token=bot_token)
        _clients[team_id] = client
    return client


def get_slack_client_by_team(team_id: str) -> Optional[WebClient]:
    if team_id in _clients:
        return _clients[team_id]
    installation = SlackInstallation.query.filter_by(team_id=team_id).one_or_none()
    if installation is None:
        return None
    return get_slack_client(team_id, decrypt_token(installation.bot_access_token_encrypted))


def clear_slack_client(team_id: str) -> None:
    _clients.pop(team_id, None)


def build_task_blocks(title: str, task_url: str, status: str, due_date: Optional[str] = None) -> list[dict]:
    return [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f":handshake: New handoff: *{title}*"},
        },
        {
            "type": "section",
            "fields": [
                {"type": "mrkdwn", "text": f"*Status:*\n{status}"},
                {"type": "mrkdwn", "text": f"*Due:*\n{due_date}" if due_date else "_No due date_"},
            ],
        },
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": {"type": "plain_text", "text": "Open in TaskFlow"},
                    "url": task_url,
                    "action_id": "open_task",
                }
            ],
        },
    ]


def send_task_notification(
    team_id: str,
    channel_id: str,
    title: str,
    task_url: str,
    status: str,
    due_date: Optional[str] = None,
) -> bool:
    """Post a Block Kit task message. Returns ``False`` when it could not be sent."""

    client = get_slack_client_by_team(team_id)
    if client is None:
        return False
    try:
        client.chat_postMessage(
            channel=channel_id,
            text=f"{title}: {status}",
            blocks=build_task_blocks(title, task_url, status, due_date),
        )
    except SlackApiError as exc:
        logging.error("Slack notification error for team %s: %s", team_id, exc)
        return False
    return True


def notify_task_status(user_id: int, task: Task) -> int:
    """Post the task's status to every Slack channel the user installed into."""

    installations = SlackInstallation.query.filter(
        SlackInstallation.user_id == user_id,
        SlackInstallation.incoming_webhook_channel_id.isnot(None),
    ).all()
    if not installations:
        return 0
    app_url = (current_app.config.get("APP_URL") or "").rstrip("/")
    sent = 0
    for installation in installations:
        if send_task_notification(
            installation.team_id,
            installation.incoming_webhook_channel_id,
            task.title,
            f"{app_url}/tasks/{task.id}",
            task.status,
            to_iso(task.due_date),
        ):
            sent += 1
    return sent


def verify_slack_request(signing_secret: Optional[str], body: bytes, headers: Mapping[str, str]) -> tuple[bool, Optional[str]]:
    """Validate Slack's request signature; returns ``(valid, reason)``."""

    if not signing_secret:
        return False, "Slack signing secret not configured"
    normalized = {key.lower(): value for key, value in headers.items()}
    if not normalized.get("x-slack-signature") or not normalized.get("x-slack-request-timestamp"):
        return False, "Missing required signature headers"
    verifier = SignatureVerifier(signing_secret)
    if not verifier.is_valid_request(body, normalized):
        return False, "Signature verification failed"
    return True, None
