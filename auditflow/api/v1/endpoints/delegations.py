"""Delegation API: out-of-office transfer of assignment eligibility."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from auditflow.api.v1.dependencies import get_delegation_service
from auditflow.application.services.delegation_service import DelegationService
from auditflow.core.limiter import limit_writes
from auditflow.schemas.delegation import DelegationCreateRequest, DelegationResponse

router = APIRouter()


@router.post("", response_model=DelegationResponse, status_code=201)
@limit_writes
async def create_delegation(
    request: Request,
    body: DelegationCreateRequest,
    service: Annotated[DelegationService, Depends(get_delegation_service)],
):
    return await service.create(
        body.from_user_id,
        body.to_user_id,
        body.start_date,
        body.end_date,
        role=body.role,
        reason=body.reason,
    )


@router.post("/{delegation_id}/deactivate", response_model=DelegationResponse)
@limit_writes
async def deactivate_delegation(
    request: Request,
    delegation_id: str,
    service: Annotated[DelegationService, Depends(get_delegation_service)],
):
    return await service.deactivate(delegation_id)


@router.get("", response_model=list[DelegationResponse])
async def list_delegations(
    service: Annotated[DelegationService, Depends(get_delegation_service)],
    user_id: str = Query(..., min_length=1),
    active_only: bool = Query(True),
):
    """Delegations given or received by user_id."""
    return await service.list_for_user(user_id, active_only=active_only)
