""" Represents a user in the system.

A User can create Tasks and is recorded as their creator
A User can be assigned Tasks created by other Users
A User receives Notifications about Tasks
A User can connect a GitHub account (one encrypted token per User)
A User can install TaskFlow into Slack workspaces

"""

from werkzeug.security import generate_password_hash, check_password_hash
from database import db
from utils.dates import utcnow


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.Text)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    created_tasks = db.relationship(
        "Task",
        back_populates="created_by",
        lazy=True,
        foreign_keys="Task.created_by_id",
    )
    assigned_tasks = db.relationship(
        "Task",
        back_populates="assignee",
        lazy=True,
        foreign_keys="Task.assigned_to_id",
    )
    notifications = db.relationship(
        "Notification",
        back_populates="user",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    github_token = db.relationship(
        "GitHubToken",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    slack_installations = db.relationship(
        "SlackInstallation",
        back_populates="user",
        lazy="selectin",
    )

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_summary(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<User {self.id}>"
