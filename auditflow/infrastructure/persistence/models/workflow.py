"""Workflow definition, instance, step assignment and timeline ORM models."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from auditflow.domain.enums import (
    AssignmentStatus,
    AssignmentType,
    InstanceStatus,
    TimelineAction,
)
from auditflow.infrastructure.persistence.database import Base
from auditflow.infrastructure.persistence.models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    TimestampMixin,
)


def _in_values(column: str, values: list[str]) -> str:
    """SQL for a CHECK constraint restricting column to enum values."""
    return "{} IN ({})".format(
        column, ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    )


class WorkflowDefinition(CuidMixin, TimestampMixin, Base):
    """Versioned workflow graph. Table: workflow_definition.

    nodes/edges hold the serialized graph. A definition referenced by an
    instance is never edited in place; edits create version + 1.
    """

    __tablename__ = "workflow_definition"

    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=sa.text("1")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sa.true()
    )
    nodes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    edges: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_workflow_definition_name_version"),
    )


class WorkflowInstance(CuidMixin, TimestampMixin, Base):
    """One execution of a definition for one business entity. Table: workflow_instance."""

    __tablename__ = "workflow_instance"

    definition_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_definition.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    current_node_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=InstanceStatus.ACTIVE.value, index=True
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    started_by: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "definition_id",
            "entity_type",
            "entity_id",
            name="uq_workflow_instance_definition_entity",
        ),
        Index("ix_workflow_instance_entity", "entity_type", "entity_id"),
        CheckConstraint(
            _in_values("status", InstanceStatus.values()),
            name="workflow_instance_status_check",
        ),
    )


class StepAssignment(CuidMixin, CreatedAtMixin, Base):
    """Human work item for one node visit. Table: step_assignment.

    visit_id groups the assignments created by a single node entry (several
    for an approval node), so loops back to a node start a fresh quorum.
    """

    __tablename__ = "step_assignment"

    workflow_instance_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_instance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_id: Mapped[str] = mapped_column(String, nullable=False)
    visit_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    assignment_type: Mapped[str] = mapped_column(String, nullable=False)
    assigned_role: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    assigned_user_id: Mapped[str | None] = mapped_column(
        String, nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=AssignmentStatus.PENDING.value, index=True
    )
    deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    escalated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    escalated_to: Mapped[str | None] = mapped_column(String, nullable=True)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_step_assignment_status_deadline", "status", "deadline"),
        CheckConstraint(
            _in_values("status", AssignmentStatus.values()),
            name="step_assignment_status_check",
        ),
        CheckConstraint(
            _in_values("assignment_type", AssignmentType.values()),
            name="step_assignment_type_check",
        ),
    )


class WorkflowTimelineEvent(CuidMixin, CreatedAtMixin, Base):
    """Append-only audit entry. Table: workflow_timeline_event.

    sequence is strictly increasing per instance and is the ordering key
    used to reconstruct history; rows are never updated or deleted.
    """

    __tablename__ = "workflow_timeline_event"

    workflow_instance_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("workflow_instance.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False, index=True)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    step_id: Mapped[str | None] = mapped_column(String, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint(
            "workflow_instance_id",
            "sequence",
            name="uq_workflow_timeline_event_instance_sequence",
        ),
        CheckConstraint(
            _in_values("action", TimelineAction.values()),
            name="workflow_timeline_event_action_check",
        ),
    )
