"""Encrypted GitHub credential for a user."""

from database import db
from utils.dates import utcnow


class GitHubToken(db.Model):
    __tablename__ = "github_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, unique=True)
    encrypted_token = db.Column(db.LargeBinary, nullable=False)
    github_login = db.Column(db.String(255), nullable=True)
    github_avatar = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", back_populates="github_token")

    def __repr__(self) -> str:
        return f"<GitHubToken user={self.user_id} login={self.github_login}>"
