"""Initial schema: users, one-time tokens, workspaces, notifications, projects, tasks.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _one_time_token_columns() -> list[sa.Column]:
    return [
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
    ]


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("notify_in_app", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "email_verification_tokens",
        *_one_time_token_columns(),
        _timestamp("used_at", nullable=True),
    )
    op.create_index("idx_email_verification_tokens_user", "email_verification_tokens", ["user_id"])

    op.create_table(
        "password_reset_tokens",
        *_one_time_token_columns(),
        _timestamp("used_at", nullable=True),
    )
    op.create_index("idx_password_reset_tokens_user", "password_reset_tokens", ["user_id"])

    op.create_table(
        "email_change_requests",
        *_one_time_token_columns(),
        sa.Column("new_email", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        _timestamp("confirmed_at", nullable=True),
    )
    op.create_index("idx_email_change_requests_user", "email_change_requests", ["user_id"])

    op.create_table(
        "workspaces",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "workspace_members",
        _uuid("id", primary_key=True),
        _uuid("workspace_id", sa.ForeignKey("workspaces.id"), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        _timestamp("joined_at"),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_workspace_members_role"),
    )
    op.create_index("idx_workspace_members_user", "workspace_members", ["user_id"])

    op.create_table(
        "workspace_invites",
        _uuid("id", primary_key=True),
        _uuid("workspace_id", sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        _uuid("invited_by", sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        _timestamp("responded_at", nullable=True),
    )
    op.create_index("idx_workspace_invites_workspace", "workspace_invites", ["workspace_id"])

    op.create_table(
        "notifications",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=True),
        _uuid("entity_id", nullable=True),
        _uuid("actor_id", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("idx_notifications_user_unread", "notifications", ["user_id", "is_read"])

    op.create_table(
        "projects",
        _uuid("id", primary_key=True),
        _uuid("workspace_id", sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_projects_workspace", "projects", ["workspace_id"])

    op.create_table(
        "tasks",
        _uuid("id", primary_key=True),
        _uuid("project_id", sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="todo"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("idx_tasks_project", "tasks", ["project_id"])

    # Typeahead search is a case-insensitive substring match.
    op.execute("CREATE INDEX idx_projects_name_lower ON projects (lower(name))")
    op.execute("CREATE INDEX idx_tasks_title_lower ON tasks (lower(title))")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_tasks_title_lower")
    op.execute("DROP INDEX IF EXISTS idx_projects_name_lower")

    # Reverse dependency order
    op.drop_table("tasks")
    op.drop_table("projects")
    op.drop_table("notifications")
    op.drop_table("workspace_invites")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
    op.drop_table("email_change_requests")
    op.drop_table("password_reset_tokens")
    op.drop_table("email_verification_tokens")
    op.drop_table("users")
