"""Encrypted storage and resolution of third-party access tokens.

Tokens are encrypted with Fernet before they touch the database and are only
decrypted inside the request that calls the provider. Plaintext tokens are
never logged or returned to API callers.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

from database import db
from models.github_token import GitHubToken
from models.slack_installation import SlackInstallation

PROVIDER_GITHUB = "github"
PROVIDER_SLACK = "slack"
PROVIDER_LABELS = {PROVIDER_GITHUB: "GitHub", PROVIDER_SLACK: "Slack"}


class IntegrationNotConnected(LookupError):
    """Raised when a user has no stored credential for a provider."""

    def __init__(self, provider: str):
        label = PROVIDER_LABELS.get(provider, provider)
        super().__init__(f"{label} not connected. Please connect your account first.")
        self.provider = provider


class TokenDecryptionError(RuntimeError):
    """Raised when a stored token cannot be decrypted with the configured key."""


def _get_fernet() -> Fernet:
    secret_key = current_app.config.get("ENCRYPTION_KEY") or current_app.config.get("SECRET_KEY")
    if not secret_key:
        raise RuntimeError("ENCRYPTION_KEY or SECRET_KEY is required to encrypt tokens")
    if isinstance(secret_key, str):
        secret_bytes = secret_key.encode("utf-8")
    else:
        secret_bytes = secret_key
    digest = hashlib.sha256(secret_bytes).digest()
    encoded_key = base64.urlsafe_b64encode(digest)
    return Fernet(encoded_key)


def encrypt_token(token: str) -> bytes:
    if not token:
        raise ValueError("Token must not be empty")
    fernet = _get_fernet()
    return fernet.encrypt(token.encode("utf-8"))


def decrypt_token(token_encrypted: Optional[bytes]) -> Optional[str]:
    if not token_encrypted:
        return None
    fernet = _get_fernet()
    try:
        return fernet.decrypt(token_encrypted).decode("utf-8")
    except InvalidToken as exc:
        logging.error("Unable to decrypt a stored token; the encryption key may have been rotated.")
        raise TokenDecryptionError(
            "Stored credentials could not be decrypted with the configured key."
        ) from exc


def store_github_token(
    user_id: int,
    token: str,
    *,
    login: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> GitHubToken:
    """Encrypt and upsert the GitHub token for a user. The caller commits."""

    record = GitHubToken.query.filter_by(user_id=user_id).one_or_none()
    if record is None:
        record = GitHubToken(user_id=user_id)
        db.session.add(record)
    record.encrypted_token = encrypt_token(token)
    record.github_login = login
    record.github_avatar = avatar_url
    return record


def get_github_token(user_id: int) -> Optional[str]:
    record = GitHubToken.query.filter_by(user_id=user_id).one_or_none()
    if record is None:
        return None
    return decrypt_token(record.encrypted_token)


def get_github_user_info(user_id: int) -> Optional[dict[str, Optional[str]]]:
    """Return the connected GitHub identity without touching the token."""

    record = GitHubToken.query.filter_by(user_id=user_id).one_or_none()
    if record is None:
        return None
    return {"login": record.github_login, "avatar_url": record.github_avatar}


def delete_github_token(user_id: int) -> bool:
    record = GitHubToken.query.filter_by(user_id=user_id).one_or_none()
    if record is None:
        return False
    db.session.delete(record)
    return True


def get_slack_bot_token(user_id: int) -> Optional[str]:
    """Return the bot token of the user's most recent Slack installation."""

    installation = (
        SlackInstallation.query.filter_by(user_id=user_id)
        .order_by(SlackInstallation.updated_at.desc())
        .first()
    )
    if installation is None:
        return None
    return decrypt_token(installation.bot_access_token_encrypted)


def resolve_token(user_id: int, provider: str, *, session_token: Optional[str] = None) -> str:
    """Return a plaintext token for ``provider`` or raise ``IntegrationNotConnected``.

    A token attached to the current request takes precedence over stored
    credentials.
    """
    if session_token:
        return session_token
    if provider == PROVIDER_GITHUB:
        token = get_github_token(user_id)
    elif provider == PROVIDER_SLACK:
        token = get_slack_bot_token(user_id)
    else:
        raise ValueError(f"Unknown provider '{provider}'")
    if not token:
        raise IntegrationNotConnected(provider)
    return token
