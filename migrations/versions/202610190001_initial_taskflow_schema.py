"""Initial TaskFlow schema

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "user" not in existing_tables:
        op.create_table(
            "user",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=80), nullable=False),
            sa.Column("password_hash", sa.Text(), nullable=True),
            sa.Column("name", sa.String(length=80), nullable=False),
            sa.Column("email", sa.String(length=120), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.UniqueConstraint("email"),
        )

    if "task" not in existing_tables:
        op.create_table(
            "task",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("priority", sa.String(length=16), nullable=False),
            sa.Column("created_by_id", sa.Integer(), nullable=False),
            sa.Column("assigned_to_id", sa.Integer(), nullable=True),
            sa.Column("due_date", sa.DateTime(), nullable=True),
            sa.Column("github_repo", sa.String(length=255), nullable=True),
            sa.Column("github_issue_number", sa.Integer(), nullable=True),
            sa.Column("github_issue_url", sa.String(length=512), nullable=True),
            sa.Column("github_pr_url", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["created_by_id"], ["user.id"]),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["user.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("github_repo", "github_issue_number", name="uq_task_github_issue"),
        )
        op.create_index("ix_task_status", "task", ["status"])
        op.create_index("ix_task_created_by_id", "task", ["created_by_id"])
        op.create_index("ix_task_assigned_to_id", "task", ["assigned_to_id"])

    if "task_events" not in existing_tables:
        op.create_table(
            "task_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("task_id", sa.Integer(), nullable=False),
            sa.Column("event_type", sa.String(length=32), nullable=False),
            sa.Column("old_status", sa.String(length=32), nullable=True),
            sa.Column("new_status", sa.String(length=32), nullable=True),
            sa.Column("changed_by_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["task_id"], ["task.id"]),
            sa.ForeignKeyConstraint(["changed_by_id"], ["user.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_events_task_id", "task_events", ["task_id"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("task_id", sa.Integer(), nullable=True),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
            sa.ForeignKeyConstraint(["task_id"], ["task.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
        op.create_index("ix_notifications_task_id", "notifications", ["task_id"])
        op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    if "github_tokens" not in existing_tables:
        op.create_table(
            "github_tokens",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("encrypted_token", sa.LargeBinary(), nullable=False),
            sa.Column("github_login", sa.String(length=255), nullable=True),
            sa.Column("github_avatar", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )

    if "slack_installations" not in existing_tables:
        op.create_table(
            "slack_installations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("team_id", sa.String(length=64), nullable=False),
            sa.Column("team_name", sa.String(length=255), nullable=True),
            sa.Column("enterprise_id", sa.String(length=64), nullable=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("slack_user_id", sa.String(length=64), nullable=True),
            sa.Column("access_token_encrypted", sa.LargeBinary(), nullable=True),
            sa.Column("bot_access_token_encrypted", sa.LargeBinary(), nullable=False),
            sa.Column("scope", sa.Text(), nullable=False, server_default=""),
            sa.Column("incoming_webhook_channel_id", sa.String(length=64), nullable=True),
            sa.Column("installed_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["user.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("team_id"),
        )
        op.create_index("ix_slack_installations_user_id", "slack_installations", ["user_id"])


def downgrade():
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    for table_name in (
        "slack_installations",
        "github_tokens",
        "notifications",
        "task_events",
        "task",
        "user",
    ):
        if table_name in existing_tables:
            op.drop_table(table_name)
