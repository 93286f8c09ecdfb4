"""initial schema: workflows, directory, job queue, notifications, sync

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Upgrade schema - create every table."""
    op.create_table(
        "workflow_definition",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("nodes", sa.JSON(), nullable=False),
        sa.Column("edges", sa.JSON(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "version", name="uq_workflow_definition_name_version"),
    )
    op.create_index("ix_workflow_definition_name", "workflow_definition", ["name"])
    op.create_index("ix_workflow_definition_entity_type", "workflow_definition", ["entity_type"])
    op.create_index("ix_workflow_definition_created_at", "workflow_definition", ["created_at"])

    op.create_table(
        "workflow_instance",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("definition_id", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("current_node_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("started_by", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["definition_id"], ["workflow_definition.id"], ondelete="RESTRICT"
        ),
        sa.UniqueConstraint(
            "definition_id",
            "entity_type",
            "entity_id",
            name="uq_workflow_instance_definition_entity",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'cancelled')",
            name="workflow_instance_status_check",
        ),
    )
    op.create_index("ix_workflow_instance_definition_id", "workflow_instance", ["definition_id"])
    op.create_index("ix_workflow_instance_status", "workflow_instance", ["status"])
    op.create_index("ix_workflow_instance_entity", "workflow_instance", ["entity_type", "entity_id"])
    op.create_index("ix_workflow_instance_created_at", "workflow_instance", ["created_at"])

    op.create_table(
        "step_assignment",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_instance_id", sa.String(), nullable=False),
        sa.Column("step_id", sa.String(), nullable=False),
        sa.Column("visit_id", sa.String(), nullable=False),
        sa.Column("assignment_type", sa.String(), nullable=False),
        sa.Column("assigned_role", sa.String(), nullable=True),
        sa.Column("assigned_user_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.String(), nullable=True),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["workflow_instance_id"], ["workflow_instance.id"], ondelete="CASCADE"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'rejected', 'escalated', 'superseded')",
            name="step_assignment_status_check",
        ),
        sa.CheckConstraint(
            "assignment_type IN ('role', 'user')", name="step_assignment_type_check"
        ),
    )
    for column in (
        "workflow_instance_id",
        "visit_id",
        "assigned_role",
        "assigned_user_id",
        "status",
        "deadline",
        "created_at",
    ):
        op.create_index(f"ix_step_assignment_{column}", "step_assignment", [column])
    op.create_index(
        "ix_step_assignment_status_deadline", "step_assignment", ["status", "deadline"]
    )

    op.create_table(
        "workflow_timeline_event",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("workflow_instance_id", sa.String(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("step_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["workflow_instance_id"], ["workflow_instance.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "workflow_instance_id",
            "sequence",
            name="uq_workflow_timeline_event_instance_sequence",
        ),
        sa.CheckConstraint(
            "action IN ('enter_node', 'approve', 'reject', 'escalate', 'reassign', "
            "'complete', 'cancel', 'veto')",
            name="workflow_timeline_event_action_check",
        ),
    )
    for column in ("workflow_instance_id", "action", "actor_id", "created_at"):
        op.create_index(
            f"ix_workflow_timeline_event_{column}", "workflow_timeline_event", [column]
        )

    op.create_table(
        "app_user",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_app_user_email", "app_user", ["email"], unique=True)
    op.create_index("ix_app_user_external_id", "app_user", ["external_id"])
    op.create_index("ix_app_user_created_at", "app_user", ["created_at"])

    op.create_table(
        "role",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_role_created_at", "role", ["created_at"])

    op.create_table(
        "user_role",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("role_id", sa.String(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["role.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )
    op.create_index("ix_user_role_user_id", "user_role", ["user_id"])
    op.create_index("ix_user_role_role_id", "user_role", ["role_id"])
    op.create_index("ix_user_role_created_at", "user_role", ["created_at"])

    op.create_table(
        "delegation",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("from_user_id", sa.String(), nullable=False),
        sa.Column("to_user_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reason", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["from_user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.CheckConstraint("start_date < end_date", name="delegation_date_range_check"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="delegation_not_self_check"),
    )
    op.create_index(
        "ix_delegation_from_user_active", "delegation", ["from_user_id", "is_active"]
    )
    op.create_index("ix_delegation_created_at", "delegation", ["created_at"])

    op.create_table(
        "assignment_cursor",
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("last_user_id", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("role"),
    )

    op.create_table(
        "background_job",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("queue_name", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("state", sa.String(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("attempts_made", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("backoff_type", sa.String(), nullable=False),
        sa.Column("backoff_delay_ms", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "queue_name", "idempotency_key", name="uq_background_job_idempotency"
        ),
        sa.CheckConstraint(
            "state IN ('waiting', 'active', 'completed', 'failed', 'delayed')",
            name="background_job_state_check",
        ),
        sa.CheckConstraint(
            "backoff_type IN ('fixed', 'exponential')",
            name="background_job_backoff_type_check",
        ),
    )
    op.create_index(
        "ix_background_job_queue_state", "background_job", ["queue_name", "state", "priority"]
    )
    op.create_index(
        "ix_background_job_queue_started", "background_job", ["queue_name", "started_at"]
    )
    op.create_index(
        "ix_background_job_queue_locked",
        "background_job",
        ["queue_name", "state", "locked_until"],
    )
    op.create_index("ix_background_job_created_at", "background_job", ["created_at"])

    op.create_table(
        "notification",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("link", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "type IN ('info', 'success', 'warning', 'error', 'task')",
            name="notification_type_check",
        ),
    )
    op.create_index("ix_notification_user_read", "notification", ["user_id", "is_read"])
    op.create_index("ix_notification_created_at", "notification", ["created_at"])

    op.create_table(
        "sync_config",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("source_type", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("field_mapping", sa.JSON(), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.CheckConstraint(
            "source_type IN ('ldap', 'csv', 'rest_api', 'webhook', 'manual')",
            name="sync_config_source_type_check",
        ),
    )
    op.create_index("ix_sync_config_created_at", "sync_config", ["created_at"])

    op.create_table(
        "sync_log",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("config_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("triggered_by", sa.String(), nullable=True),
        sa.Column("job_id", sa.String(), nullable=True),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("created_count", sa.Integer(), nullable=False),
        sa.Column("updated_count", sa.Integer(), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("failed_count", sa.Integer(), nullable=False),
        sa.Column("skipped_count", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_details", sa.JSON(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["config_id"], ["sync_config.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="sync_log_status_check",
        ),
    )
    op.create_index("ix_sync_log_config_id", "sync_log", ["config_id"])
    op.create_index("ix_sync_log_status", "sync_log", ["status"])
    op.create_index("ix_sync_log_created_at", "sync_log", ["created_at"])


def downgrade() -> None:
    """Downgrade schema - drop every table (reverse dependency order)."""
    for table in (
        "sync_log",
        "sync_config",
        "notification",
        "background_job",
        "assignment_cursor",
        "delegation",
        "user_role",
        "role",
        "app_user",
        "workflow_timeline_event",
        "step_assignment",
        "workflow_instance",
        "workflow_definition",
    ):
        op.drop_table(table)
