"""Workflow analytics API."""

from typing import Annotated

from fastapi import APIRouter, Depends

from auditflow.api.v1.dependencies import get_analytics_use_case
from auditflow.application.use_cases.workflow_analytics import (
    GetWorkflowAnalyticsUseCase,
)
from auditflow.schemas.analytics import (
    UserAssignmentStatsResponse,
    WorkflowAnalyticsResponse,
)

router = APIRouter()


@router.get("/workflows", response_model=WorkflowAnalyticsResponse)
async def get_workflow_analytics(
    use_case: Annotated[GetWorkflowAnalyticsUseCase, Depends(get_analytics_use_case)],
):
    return await use_case.get_analytics()


@router.get("/users/{user_id}", response_model=UserAssignmentStatsResponse)
async def get_user_assignment_stats(
    user_id: str,
    use_case: Annotated[GetWorkflowAnalyticsUseCase, Depends(get_analytics_use_case)],
):
    return await use_case.get_user_assignment_stats(user_id)
