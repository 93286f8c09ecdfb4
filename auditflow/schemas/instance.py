"""Workflow instance, assignment and timeline API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from auditflow.application.dtos.workflow import TransitionResult


class StartInstanceRequest(BaseModel):
    """Start the active workflow for an entity.

    metadata is used as-is when given; otherwise it is built from core_fields
    and custom_fields.
    """

    entity_type: str = Field(..., min_length=1, max_length=128)
    entity_id: str = Field(..., min_length=1, max_length=255)
    metadata: dict[str, Any] | None = None
    core_fields: dict[str, Any] = Field(default_factory=dict)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    started_by: str | None = None


class WorkflowInstanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class StepAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
    completed_at: datetime | None
    completed_by: str | None
    comment: str | None
    escalated_at: datetime | None
    escalated_to: str | None


class TimelineEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_instance_id: str
    sequence: int
    action: str
    actor_id: str | None
    step_id: str | None
    payload: dict[str, Any]
    created_at: datetime


class TransitionResponse(BaseModel):
    """What one engine call changed."""

    instance: WorkflowInstanceResponse
    assignments_created: list[StepAssignmentResponse]
    events: list[TimelineEventResponse]

    @classmethod
    def from_result(cls, result: TransitionResult) -> TransitionResponse:
        return cls(
            instance=WorkflowInstanceResponse.model_validate(result.instance),
            assignments_created=[
                StepAssignmentResponse.model_validate(a) for a in result.assignments_created
            ],
            events=[TimelineEventResponse.model_validate(e) for e in result.events],
        )


class CancelInstanceRequest(BaseModel):
    actor_id: str | None = None
    reason: str | None = None


class VetoInstanceRequest(BaseModel):
    actor_id: str = Field(..., min_length=1)
    comment: str | None = None


class AssignmentActionRequest(BaseModel):
    action: Literal["approve", "reject"]
    actor_id: str = Field(..., min_length=1)
    comment: str | None = None


class ReassignRequest(BaseModel):
    to_user_id: str = Field(..., min_length=1)
    actor_id: str | None = None
    reason: str | None = None


class DeadlineStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_pending: int
    on_time: int
    approaching: int
    overdue: int
    without_deadline: int


class EscalationOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assignment_id: str
    status: str
    escalated_to_role: str | None = None
    escalated_to_user_id: str | None = None
    new_assignment_id: str | None = None
    error: str | None = None


class OverdueProcessingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    escalated: int
    failed: int
    results: list[EscalationOutcomeResponse]
    reminders_sent: int = 0
