"""Stored result of a Slack workspace authorizing TaskFlow."""

from database import db
from utils.dates import utcnow


class SlackInstallation(db.Model):
    __tablename__ = "slack_installations"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(64), nullable=False, unique=True)
    team_name = db.Column(db.String(255), nullable=True)
    enterprise_id = db.Column(db.String(64), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    slack_user_id = db.Column(db.String(64), nullable=True)
    access_token_encrypted = db.Column(db.LargeBinary, nullable=True)
    bot_access_token_encrypted = db.Column(db.LargeBinary, nullable=False)
    scope = db.Column(db.Text, nullable=False, default="")
    incoming_webhook_channel_id = db.Column(db.String(64), nullable=True)
    installed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", back_populates="slack_installations")

    def __repr__(self) -> str:
        return f"<SlackInstallation team={self.team_id} user={self.user_id}>"
