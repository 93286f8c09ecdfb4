"""Workflow analytics API schemas."""

from pydantic import BaseModel, ConfigDict


class EntityTypePerformanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entity_type: str
    total: int
    completed: int
    cancelled: int
    completion_rate: float


class ActivityPointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: str
    action: str
    count: int


class PerformerStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    completed: int
    average_hours: float


class StepBottleneckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step_id: str
    average_hours: float
    count: int


class EscalationStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_escalated: int
    by_step: dict[str, int]


class WorkflowAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    instances_by_status: dict[str, int]
    assignments_by_status: dict[str, int]
    average_completion_hours: float | None
    active_instances: int
    overdue_assignments: int
    performance_by_entity_type: list[EntityTypePerformanceResponse]
    timeline_activity: list[ActivityPointResponse]
    top_performers: list[PerformerStatsResponse]
    bottlenecks: list[StepBottleneckResponse]
    escalations: EscalationStatsResponse


class UserAssignmentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    pending: int
    overdue: int
    total_workload: int
