"""External sync API: configs, manual triggers, CSV import and sync logs."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from auditflow.api.v1.dependencies import get_sync_service
from auditflow.core.limiter import limit_sync_trigger, limit_upload, limit_writes
from auditflow.infrastructure.services import SyncService
from auditflow.schemas.job import QueueStatusResponse
from auditflow.schemas.sync import (
    SyncConfigCreateRequest,
    SyncConfigResponse,
    SyncLogResponse,
    SyncTriggerRequest,
    SyncTriggerResponse,
)

router = APIRouter()


@router.post("/configs", response_model=SyncConfigResponse, status_code=201)
@limit_writes
async def create_sync_config(
    request: Request,
    body: SyncConfigCreateRequest,
    service: Annotated[SyncService, Depends(get_sync_service)],
):
    return await service.create_config(
        body.name,
        body.source_type,
        settings=body.settings,
        field_mapping=body.field_mapping,
        is_active=body.is_active,
    )


@router.get("/configs", response_model=list[SyncConfigResponse])
async def list_sync_configs(service: Annotated[SyncService, Depends(get_sync_service)]):
    return await service.list_configs()


@router.get("/configs/{config_id}", response_model=SyncConfigResponse)
async def get_sync_config(
    config_id: str, service: Annotated[SyncService, Depends(get_sync_service)]
):
    return await service.get_config(config_id)


@router.post(
    "/configs/{config_id}/trigger", response_model=SyncTriggerResponse, status_code=202
)
@limit_sync_trigger
async def trigger_sync(
    request: Request,
    config_id: str,
    body: SyncTriggerRequest,
    service: Annotated[SyncService, Depends(get_sync_service)],
):
    """Queue a sync run. CSV, webhook and manual sources are rejected with 422."""
    result = await service.trigger_manual_sync(config_id, triggered_by=body.triggered_by)
    return SyncTriggerResponse(
        sync_log=SyncLogResponse.model_validate(result.sync_log), job_id=result.job_id
    )


@router.post("/configs/{config_id}/import", response_model=SyncLogResponse)
@limit_upload
async def import_csv(
    request: Request,
    config_id: str,
    service: Annotated[SyncService, Depends(get_sync_service)],
    triggered_by: str | None = Query(None),
):
    """Import users from a CSV request body (text/csv) in-request."""
    content = await request.body()
    return await service.import_csv(config_id, content, triggered_by=triggered_by)


@router.get("/configs/{config_id}/logs", response_model=list[SyncLogResponse])
async def list_sync_logs(
    config_id: str,
    service: Annotated[SyncService, Depends(get_sync_service)],
    limit: int = Query(50, ge=1, le=500),
):
    return await service.list_logs(config_id, limit=limit)


@router.post("/jobs/{job_id}/cancel", response_model=SyncLogResponse | None)
@limit_writes
async def cancel_sync_job(
    request: Request,
    job_id: str,
    service: Annotated[SyncService, Depends(get_sync_service)],
):
    """Cancel a queued sync that has not started; its log is marked failed."""
    return await service.cancel_sync_job(job_id)


@router.get("/queue", response_model=QueueStatusResponse)
async def get_sync_queue_status(service: Annotated[SyncService, Depends(get_sync_service)]):
    return await service.get_queue_status()
