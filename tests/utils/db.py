"""Test database helpers."""

from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret-key",
    "ENCRYPTION_KEY": "test-encryption-key",
    "GITHUB_API_BASE": "https://api.github.test",
    "GITHUB_WEBHOOK_SECRET": "webhook-secret",
    "SLACK_CLIENT_ID": "slack-client-id",
    "SLACK_CLIENT_SECRET": "slack-client-secret",
    "SLACK_SIGNING_SECRET": "slack-signing-secret",
    "APP_URL": "http://taskflow.test",
}


def provision_test_database(prefix: str = "taskflow_test") -> Tuple[str | None, str, bool]:
    """Create a throwaway SQLite database for tests.

    Returns a tuple of (database_path, database_uri, managed_flag).
    When managed_flag is False the caller must not attempt to remove the database.
    """
    override_url = os.environ.get("TEST_DATABASE_URL")
    if override_url:
        return None, override_url, False

    temp_db = tempfile.NamedTemporaryFile(prefix=f"{prefix}_", suffix=".db", delete=False)
    temp_db_path = temp_db.name
    temp_db.close()
    return temp_db_path, f"sqlite:///{temp_db_path}", True


def cleanup_test_database(database_path: str | None) -> None:
    if not database_path:
        return
    path = Path(database_path)
    if path.exists():
        path.unlink()


def rebuild_database_engine(db, database_uri: str):
    """Ensure the SQLAlchemy engine reflects the provided database URI."""

    engines = db.engines
    engine = engines.pop(None, None)

    if engine is not None:
        engine.dispose()

    engine_options = getattr(db, "_engine_options", {}) or {}
    engines[None] = db.create_engine(database_uri, **engine_options)
    return engines[None]


class AppTestCase(unittest.TestCase):
    """Runs each test against a fresh schema with the test configuration applied."""

    def setUp(self):
        from app import app, db
        from services import slack_service
        from services.slack_service import SlackInstaller

        self.app = app
        self.db = db
        self.db_path, self.database_uri, self._managed = provision_test_database()
        self._original_config = {key: app.config.get(key) for key in TEST_CONFIG}
        self._original_database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
        self._original_installer = app.extensions.get("slack_installer")

        app.config.update(TEST_CONFIG)
        app.config["SQLALCHEMY_DATABASE_URI"] = self.database_uri
        app.extensions["slack_installer"] = SlackInstaller.from_config(app.config)
        slack_service._clients.clear()

        with app.app_context():
            rebuild_database_engine(db, self.database_uri)
            db.session.remove()
            db.drop_all()
            db.create_all()

        self.client = app.test_client()

    def tearDown(self):
        from services import slack_service

        with self.app.app_context():
            self.db.session.remove()
            self.db.drop_all()
            self.db.engine.dispose()

        slack_service._clients.clear()
        self.app.extensions["slack_installer"] = self._original_installer
        self.app.config.update(self._original_config)
        if self._original_database_uri is not None:
            self.app.config["SQLALCHEMY_DATABASE_URI"] = self._original_database_uri
        if self._managed:
            cleanup_test_database(self.db_path)

    def create_user(self, username: str = "alice", *, name: str | None = None, email: str | None = None) -> int:
        from models.user import User

        with self.app.app_context():
            user = User(
                username=username,
                name=name or username.title(),
                email=email or f"{username}@example.com",
            )
            user.set_password("password123")
            self.db.session.add(user)
            self.db.session.commit()
            return user.id

    def login(self, user_id: int) -> None:
        with self.client.session_transaction() as session:
            session["user_id"] = user_id


__all__ = [
    "AppTestCase",
    "TEST_CONFIG",
    "cleanup_test_database",
    "provision_test_database",
    "rebuild_database_engine",
]
