"""Utilities for interacting with the GitHub REST API."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from http.client import RemoteDisconnected
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib import request as urllib_request, error as urllib_error
from urllib.parse import quote

from flask import current_app

from utils.dates import from_epoch_seconds, to_iso

DEFAULT_GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
PAGE_SIZE = 100


class GitHubError(RuntimeError):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubRateLimitError(GitHubError):
    """Raised when GitHub refuses a call because the rate limit is exhausted."""

    def __init__(self, reset_at: Optional[datetime], status_code: int = 403):
        super().__init__("GitHub API rate limit exceeded", status_code)
        self.reset_at = reset_at

    @property
    def reset_at_iso(self) -> Optional[str]:
        return to_iso(self.reset_at)


@dataclass
class GitHubRepository:
    """Repository summary returned to API callers."""

    id: int
    name: str
    full_name: str
    owner_login: str
    owner_avatar_url: Optional[str]
    description: Optional[str]
    private: bool
    html_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "full_name": self.full_name,
            "owner": {"login": self.owner_login, "avatar_url": self.owner_avatar_url},
            "description": self.description,
            "private": self.private,
            "html_url": self.html_url,
        }


@dataclass
class GitHubIssue:
    """Issue payload as listed by GitHub.

    Fields are copied without validation; a malformed record is rejected by
    the reconciler for that record alone.
    """

    number: Any
    title: Any
    body: Optional[str] = None
    state: str = "open"
    html_url: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    updated_at: Optional[str] = None
    is_pull_request: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GitHubIssue":
        labels = []
        for label in payload.get("labels") or []:
            if isinstance(label, dict):
                name = label.get("name")
            else:
                name = label
            if name:
                labels.append(str(name))
        return cls(
            number=payload.get("number"),
            title=payload.get("title"),
            body=payload.get("body"),
            state=payload.get("state") or "open",
            html_url=payload.get("html_url"),
            labels=labels,
            updated_at=payload.get("updated_at"),
            is_pull_request=bool(payload.get("pull_request")),
        )


def _api_base() -> str:
    if current_app:
        return current_app.config.get("GITHUB_API_BASE") or DEFAULT_GITHUB_API_BASE
    return DEFAULT_GITHUB_API_BASE


def _headers(token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github.v3+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": "TaskFlow-Integration",
    }


def _request(method: str, endpoint: str, token: str) -> Tuple[int, Any, Mapping[str, str]]:
    url = endpoint if endpoint.startswith("http") else f"{_api_base()}{endpoint}"
    request = urllib_request.Request(url, headers=_headers(token), method=method)
    try:
        with urllib_request.urlopen(request, timeout=20) as response:
            status = response.getcode()
            headers = dict(response.headers.items())
            raw = response.read()
    except urllib_error.HTTPError as error:
        status = error.code
        headers = dict(error.headers.items()) if error.headers else {}
        raw = error.read()
    except RemoteDisconnected as error:
        raise GitHubError("GitHub closed the connection unexpectedly.") from error
    except urllib_error.URLError as error:
        raise GitHubError("Unable to reach GitHub.") from error

    text = raw.decode("utf-8") if raw else ""
    if status >= 400:
        logging.warning(
            "GitHub API call failed",
            extra={"method": method, "url": url, "status": status, "body": text[:500]},
        )
    try:
        body = json.loads(text) if text else {}
    except json.JSONDecodeError:
        body = {}
    return status, body, headers


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def is_rate_limited(status: int, headers: Mapping[str, str]) -> bool:
    """GitHub signals an exhausted quota with 429, or 403 with no remaining calls."""

    if status == 429:
        return True
    if status != 403:
        return False
    remaining = _header(headers, "X-RateLimit-Remaining")
    return remaining is None or remaining.strip() == "0"


def _raise_for_status(status: int, headers: Mapping[str, str], message: str) -> None:
    if is_rate_limited(status, headers):
        reset_at = from_epoch_seconds(_header(headers, "X-RateLimit-Reset"))
        raise GitHubRateLimitError(reset_at, status)
    if status == 401:
        raise GitHubError("Unauthorized", status)
    if status == 404:
        raise GitHubError("Repository not found", status)
    if status >= 400:
        raise GitHubError(message, status)


def fetch_authenticated_user(token: str) -> Dict[str, Any]:
    """Return the GitHub account that owns ``token``."""

    status, payload, headers = _request("GET", "/user", token)
    _raise_for_status(status, headers, "Unable to verify GitHub token")
    if not isinstance(payload, dict) or not payload.get("login"):
        raise GitHubError("Unexpected response while verifying GitHub token", status)
    return {"login": payload.get("login"), "avatar_url": payload.get("avatar_url")}


def list_repositories(token: str) -> List[GitHubRepository]:
    """Return the caller's repositories, most recently updated first (one page)."""

    status, payload, headers = _request(
        "GET", f"/user/repos?sort=updated&per_page={PAGE_SIZE}", token
    )
    _raise_for_status(status, headers, "Unable to list repositories")
    repos: List[GitHubRepository] = []
    if not isinstance(payload, list):
        return repos
    for repo in payload:
        owner = repo.get("owner") or {}
        repos.append(
            GitHubRepository(
                id=repo.get("id"),
                name=repo.get("name"),
                full_name=repo.get("full_name"),
                owner_login=owner.get("login"),
                owner_avatar_url=owner.get("avatar_url"),
                description=repo.get("description"),
                private=bool(repo.get("private")),
                html_url=repo.get("html_url"),
            )
        )
    return repos


def list_issues(token: str, owner: str, repo: str, state: str = "all") -> List[GitHubIssue]:
    """Return up to one page of issues for ``owner/repo``, most recently updated first.

    Rate limiting raises ``GitHubRateLimitError``; there is no retry.
    """
    endpoint = (
        f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/issues"
        f"?state={state}&sort=updated&direction=desc&per_page={PAGE_SIZE}"
    )
    status, payload, headers = _request("GET", endpoint, token)
    _raise_for_status(status, headers, "Unable to list issues")
    if not isinstance(payload, list):
        raise GitHubError("Unexpected issue listing payload.", status)
    return [GitHubIssue.from_payload(item) for item in payload if isinstance(item, dict)]


def verify_webhook_signature(secret: Optional[str], signature: Optional[str], body: bytes) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the raw request body."""

    if not secret or not signature:
        return False
    algorithm, _, received = signature.partition("=")
    if algorithm != "sha256" or not received:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(received, digest)
