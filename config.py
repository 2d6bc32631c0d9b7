"""Application configuration loaded from the environment."""

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SLACK_SCOPES = "chat:write,chat:write.public,commands,incoming-webhook"


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "taskflow-dev-secret")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///taskflow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # JSON endpoints validate through forms without CSRF tokens
    WTF_CSRF_ENABLED = False

    # Key used to encrypt provider tokens at rest. Falls back to SECRET_KEY.
    ENCRYPTION_KEY = os.environ.get("ENCRYPTION_KEY")

    GITHUB_API_BASE = os.environ.get("GITHUB_API_BASE", "https://api.github.com")
    GITHUB_WEBHOOK_SECRET = os.environ.get("GITHUB_WEBHOOK_SECRET")

    SLACK_CLIENT_ID = os.environ.get("SLACK_CLIENT_ID")
    SLACK_CLIENT_SECRET = os.environ.get("SLACK_CLIENT_SECRET")
    SLACK_SIGNING_SECRET = os.environ.get("SLACK_SIGNING_SECRET")
    SLACK_SCOPES = os.environ.get("SLACK_SCOPES", DEFAULT_SLACK_SCOPES)

    APP_URL = os.environ.get("APP_URL", "http://localhost:5000")
    SLACK_SETTINGS_PATH = "/settings/slack"
    LOGIN_PATH = "/login"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
