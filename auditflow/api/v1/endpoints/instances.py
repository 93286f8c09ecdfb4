"""Workflow instance API: start, inspect, cancel, veto and deadline views."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from auditflow.api.v1.dependencies import (
    get_process_overdue_use_case,
    get_workflow_runtime,
    get_workflow_runtime_readonly,
)
from auditflow.application.services.entity_metadata import build_entity_metadata
from auditflow.application.services.workflow_runtime import WorkflowRuntime
from auditflow.application.use_cases.process_overdue import (
    ProcessOverdueAssignmentsUseCase,
)
from auditflow.core.limiter import limit_writes
from auditflow.schemas.instance import (
    CancelInstanceRequest,
    DeadlineStatsResponse,
    OverdueProcessingResponse,
    StartInstanceRequest,
    StepAssignmentResponse,
    TimelineEventResponse,
    TransitionResponse,
    VetoInstanceRequest,
    WorkflowInstanceResponse,
)

router = APIRouter()


@router.post("", response_model=TransitionResponse, status_code=201)
@limit_writes
async def start_instance(
    request: Request,
    body: StartInstanceRequest,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    """Start the active workflow for an entity (idempotent per entity)."""
    metadata = body.metadata
    if metadata is None:
        metadata = build_entity_metadata(
            body.entity_type, body.entity_id, body.core_fields, body.custom_fields
        )
    result = await runtime.on_entity_eligible_for_workflow(
        body.entity_type, body.entity_id, metadata, started_by=body.started_by
    )
    if result is None:
        raise HTTPException(
            status_code=404,
            detail=f"No active workflow for entity type: {body.entity_type}",
        )
    return TransitionResponse.from_result(result)


@router.get("/unassigned", response_model=list[StepAssignmentResponse])
async def list_unassigned(
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
    limit: int = Query(100, ge=1, le=1000),
):
    """Pending steps whose role had no available member."""
    return await runtime.get_unassigned_assignments(limit=limit)


@router.get("/overdue", response_model=list[StepAssignmentResponse])
async def list_overdue(
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
    limit: int = Query(100, ge=1, le=1000),
):
    return await runtime.get_overdue_assignments(limit=limit)


@router.get("/my-tasks", response_model=list[StepAssignmentResponse])
async def list_my_tasks(
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
    user_id: str = Query(..., min_length=1),
    include_completed: bool = Query(False),
):
    """Direct assignments plus unassigned steps for the user's roles."""
    return await runtime.get_my_tasks(user_id, include_completed=include_completed)


@router.get("/deadline-stats", response_model=DeadlineStatsResponse)
async def deadline_stats(
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
):
    return await runtime.get_deadline_stats()


@router.post("/process-overdue", response_model=OverdueProcessingResponse)
@limit_writes
async def process_overdue(
    request: Request,
    use_case: Annotated[
        ProcessOverdueAssignmentsUseCase, Depends(get_process_overdue_use_case)
    ],
    limit: int = Query(100, ge=1, le=1000),
):
    """Escalate overdue work and send deadline reminders (the scheduled sweep)."""
    return await use_case.execute(limit=limit)


@router.get("/{instance_id}", response_model=WorkflowInstanceResponse)
async def get_instance(
    instance_id: str,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
):
    return await runtime.get_instance(instance_id)


@router.get("/{instance_id}/timeline", response_model=list[TimelineEventResponse])
async def get_timeline(
    instance_id: str,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
):
    """Timeline events in sequence order."""
    return await runtime.get_timeline(instance_id)


@router.get("/{instance_id}/assignments", response_model=list[StepAssignmentResponse])
async def get_assignments(
    instance_id: str,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime_readonly)],
):
    return await runtime.get_assignments(instance_id)


@router.post("/{instance_id}/cancel", response_model=TransitionResponse)
@limit_writes
async def cancel_instance(
    request: Request,
    instance_id: str,
    body: CancelInstanceRequest,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    result = await runtime.cancel_instance(
        instance_id, actor_id=body.actor_id, reason=body.reason
    )
    return TransitionResponse.from_result(result)


@router.post("/{instance_id}/veto", response_model=TransitionResponse)
@limit_writes
async def veto_instance(
    request: Request,
    instance_id: str,
    body: VetoInstanceRequest,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    """Complete the instance immediately by jumping to its end node."""
    result = await runtime.veto_instance(instance_id, body.actor_id, comment=body.comment)
    return TransitionResponse.from_result(result)
