"""DTOs for workflow definitions, instances, assignments and timeline (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from auditflow.application.dtos.validation import ValidationResult
    from auditflow.domain.entities.workflow_graph import WorkflowGraph


@dataclass(frozen=True)
class WorkflowDefinitionResult:
    """Published workflow definition (graph is the deserialized nodes/edges)."""

    id: str
    name: str
    description: str | None
    entity_type: str
    version: int
    is_active: bool
    graph: WorkflowGraph
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PublishResult:
    """Outcome of saving a definition: definition is None when validation failed."""

    definition: WorkflowDefinitionResult | None
    validation: ValidationResult

    @property
    def published(self) -> bool:
        return self.definition is not None


@dataclass(frozen=True)
class WorkflowInstanceResult:
    """Live or finished execution of a definition for one business entity."""

    id: str
    definition_id: str
    entity_type: str
    entity_id: str
    current_node_id: str | None
    status: str
    metadata: dict[str, Any]
    started_by: str | None
    created_at: datetime
    completed_at: datetime | None


@dataclass(frozen=True)
class StepAssignmentResult:
    """Unit of human work created when an instance enters a process/approval node."""

    id: str
    workflow_instance_id: str
    step_id: str
    visit_id: str
    assignment_type: str
    assigned_role: str | None
    assigned_user_id: str | None
    status: str
    deadline: datetime | None
    created_at: datetime
    completed_at: datetime | None = None
    completed_by: str | None = None
    comment: str | None = None
    escalated_at: datetime | None = None
    escalated_to: str | None = None
    reminder_sent_at: datetime | None = None

    @property
    def is_unassigned(self) -> bool:
        return self.assigned_user_id is None


@dataclass(frozen=True)
class TimelineEventResult:
    """Append-only timeline entry; sequence orders events within an instance."""

    id: str
    workflow_instance_id: str
    sequence: int
    action: str
    actor_id: str | None
    step_id: str | None
    payload: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class TransitionResult:
    """What one engine call changed: resulting instance plus rows it appended."""

    instance: WorkflowInstanceResult
    assignments_created: list[StepAssignmentResult] = field(default_factory=list)
    events: list[TimelineEventResult] = field(default_factory=list)


@dataclass(frozen=True)
class DelegationResult:
    """Time-bounded transfer of a user's assignment eligibility to a delegate."""

    id: str
    from_user_id: str
    to_user_id: str
    role: str | None
    start_date: datetime
    end_date: datetime
    is_active: bool
    reason: str | None
    created_at: datetime


@dataclass(frozen=True)
class DirectoryUser:
    """User as seen by the assignment resolver."""

    id: str
    email: str
    name: str | None
    is_active: bool


@dataclass(frozen=True)
class UserWorkload:
    """Open assignment counts for one user. Overdue work weighs double."""

    user_id: str
    pending_count: int = 0
    overdue_count: int = 0

    @property
    def total_workload(self) -> int:
        return self.pending_count + 2 * self.overdue_count


@dataclass(frozen=True)
class EscalationOutcome:
    """Result of escalating one overdue assignment."""

    assignment_id: str
    status: str
    escalated_to_role: str | None = None
    escalated_to_user_id: str | None = None
    new_assignment_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class OverdueProcessingResult:
    """Summary of one overdue sweep."""

    total: int
    escalated: int
    failed: int
    results: list[EscalationOutcome]
    reminders_sent: int = 0


@dataclass(frozen=True)
class DeadlineStats:
    """Pending assignments bucketed by deadline status."""

    total_pending: int
    on_time: int
    approaching: int
    overdue: int
    without_deadline: int
