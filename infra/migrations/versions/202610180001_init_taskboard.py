"""init taskboard tables

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_ts", "audit_logs", ["ts"])

    op.create_table(
        "content",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("author_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_content_title", "content", ["title"])
    op.create_index("ix_content_author_id", "content", ["author_id"])
    op.create_index("ix_content_status", "content", ["status"])
    op.create_index("ix_content_created_at", "content", ["created_at"])
    op.create_index("ix_content_updated_at", "content", ["updated_at"])

    op.create_table(
        "content_tasks",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("estimated_time", sa.Integer(), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("instructions", sa.String(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["content_id"], ["content.id"]),
        sa.PrimaryKeyConstraint("content_id"),
    )
    op.create_index("ix_content_tasks_category", "content_tasks", ["category"])
    op.create_index("ix_content_tasks_priority", "content_tasks", ["priority"])
    op.create_index("ix_content_tasks_status", "content_tasks", ["status"])
    op.create_index("ix_content_tasks_due_date", "content_tasks", ["due_date"])
    op.create_index("ix_content_tasks_assigned_to", "content_tasks", ["assigned_to"])
    op.create_index("ix_content_tasks_created_at", "content_tasks", ["created_at"])
    op.create_index("ix_content_tasks_updated_at", "content_tasks", ["updated_at"])

    op.create_table(
        "volunteer_profiles",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("availability", sa.String(length=20), nullable=False),
        sa.Column("preferences", sa.JSON(), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_volunteer_profiles_email", "volunteer_profiles", ["email"])
    op.create_index("ix_volunteer_profiles_role", "volunteer_profiles", ["role"])
    op.create_index("ix_volunteer_profiles_is_approved", "volunteer_profiles", ["is_approved"])
    op.create_index("ix_volunteer_profiles_created_at", "volunteer_profiles", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_volunteer_profiles_created_at", table_name="volunteer_profiles")
    op.drop_index("ix_volunteer_profiles_is_approved", table_name="volunteer_profiles")
    op.drop_index("ix_volunteer_profiles_role", table_name="volunteer_profiles")
    op.drop_index("ix_volunteer_profiles_email", table_name="volunteer_profiles")
    op.drop_table("volunteer_profiles")

    op.drop_index("ix_content_tasks_updated_at", table_name="content_tasks")
    op.drop_index("ix_content_tasks_created_at", table_name="content_tasks")
    op.drop_index("ix_content_tasks_assigned_to", table_name="content_tasks")
    op.drop_index("ix_content_tasks_due_date", table_name="content_tasks")
    op.drop_index("ix_content_tasks_status", table_name="content_tasks")
    op.drop_index("ix_content_tasks_priority", table_name="content_tasks")
    op.drop_index("ix_content_tasks_category", table_name="content_tasks")
    op.drop_table("content_tasks")

    op.drop_index("ix_content_updated_at", table_name="content")
    op.drop_index("ix_content_created_at", table_name="content")
    op.drop_index("ix_content_status", table_name="content")
    op.drop_index("ix_content_author_id", table_name="content")
    op.drop_index("ix_content_title", table_name="content")
    op.drop_table("content")

    op.drop_index("ix_audit_logs_ts", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_events_correlation_id", table_name="events")
    op.drop_index("ix_events_actor_id", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")
