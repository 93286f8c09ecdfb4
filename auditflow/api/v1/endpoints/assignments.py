"""Step assignment API: approve/reject, reassign and escalate."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from auditflow.api.v1.dependencies import get_workflow_runtime
from auditflow.application.services.workflow_runtime import WorkflowRuntime
from auditflow.core.limiter import limit_writes
from auditflow.schemas.instance import (
    AssignmentActionRequest,
    EscalationOutcomeResponse,
    ReassignRequest,
    TransitionResponse,
)

router = APIRouter()


@router.post("/{assignment_id}/action", response_model=TransitionResponse)
@limit_writes
async def act_on_assignment(
    request: Request,
    assignment_id: str,
    body: AssignmentActionRequest,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    """Approve or reject a pending assignment and advance its instance."""
    result = await runtime.on_assignment_action(
        assignment_id, body.action, body.actor_id, comment=body.comment
    )
    return TransitionResponse.from_result(result)


@router.post("/{assignment_id}/reassign", response_model=TransitionResponse)
@limit_writes
async def reassign_assignment(
    request: Request,
    assignment_id: str,
    body: ReassignRequest,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    result = await runtime.reassign(
        assignment_id, body.to_user_id, actor_id=body.actor_id, reason=body.reason
    )
    return TransitionResponse.from_result(result)


@router.post("/{assignment_id}/escalate", response_model=EscalationOutcomeResponse)
@limit_writes
async def escalate_assignment(
    request: Request,
    assignment_id: str,
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
):
    """Escalate one assignment to its node's escalation role now."""
    return await runtime.escalate(assignment_id)
