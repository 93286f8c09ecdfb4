"""DTOs for workflow analytics (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EntityTypePerformance:
    entity_type: str
    total: int
    completed: int
    cancelled: int
    completion_rate: float


@dataclass(frozen=True)
class ActivityPoint:
    date: str
    action: str
    count: int


@dataclass(frozen=True)
class PerformerStats:
    user_id: str
    completed: int
    average_hours: float


@dataclass(frozen=True)
class StepBottleneck:
    step_id: str
    average_hours: float
    count: int


@dataclass(frozen=True)
class EscalationStats:
    total_escalated: int
    by_step: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class UserAssignmentStats:
    """Per-user open work, as used by the workload strategy."""

    user_id: str
    pending: int
    overdue: int
    total_workload: int


@dataclass
class WorkflowAnalytics:
    """Dashboard analytics across all workflow instances."""

    instances_by_status: dict[str, int]
    assignments_by_status: dict[str, int]
    average_completion_hours: float | None
    active_instances: int
    overdue_assignments: int
    performance_by_entity_type: list[EntityTypePerformance]
    timeline_activity: list[ActivityPoint]
    top_performers: list[PerformerStats]
    bottlenecks: list[StepBottleneck]
    escalations: EscalationStats
