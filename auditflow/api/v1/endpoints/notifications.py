"""Notification API: queue, schedule, cancel and read in-app notifications."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from auditflow.api.v1.dependencies import get_notification_repo, get_notification_service
from auditflow.application.dtos.jobs import JobResult
from auditflow.core.limiter import limit_writes
from auditflow.domain.exceptions import ResourceNotFoundException
from auditflow.infrastructure.persistence.repositories import NotificationRepository
from auditflow.infrastructure.services import NotificationService
from auditflow.schemas.job import JobRemovedResponse
from auditflow.schemas.notification import (
    BulkNotificationRequest,
    NotificationJobResponse,
    NotificationResponse,
    NotificationSendRequest,
    ScheduleNotificationRequest,
)

router = APIRouter()


def _job_response(job: JobResult) -> NotificationJobResponse:
    return NotificationJobResponse(job_id=job.id, state=job.state, scheduled_at=job.scheduled_at)


@router.post("/send", response_model=NotificationJobResponse, status_code=202)
@limit_writes
async def send_notification(
    request: Request,
    body: NotificationSendRequest,
    service: Annotated[NotificationService, Depends(get_notification_service)],
):
    job = await service.send_notification(
        body.user_id,
        body.title,
        body.message,
        type=body.type,
        link=body.link,
        metadata=body.metadata,
    )
    return _job_response(job)


@router.post("/bulk", response_model=list[NotificationJobResponse], status_code=202)
@limit_writes
async def send_bulk_notifications(
    request: Request,
    body: BulkNotificationRequest,
    service: Annotated[NotificationService, Depends(get_notification_service)],
):
    jobs = await service.send_bulk_notifications(
        body.user_ids,
        body.title,
        body.message,
        type=body.type,
        link=body.link,
        metadata=body.metadata,
    )
    return [_job_response(j) for j in jobs]


@router.post("/schedule", response_model=NotificationJobResponse, status_code=202)
@limit_writes
async def schedule_notification(
    request: Request,
    body: ScheduleNotificationRequest,
    service: Annotated[NotificationService, Depends(get_notification_service)],
):
    job = await service.schedule_notification(
        body.user_id,
        body.title,
        body.message,
        body.send_at,
        type=body.type,
        link=body.link,
        metadata=body.metadata,
    )
    return _job_response(job)


@router.delete("/scheduled/{job_id}", response_model=JobRemovedResponse)
@limit_writes
async def cancel_scheduled_notification(
    request: Request,
    job_id: str,
    service: Annotated[NotificationService, Depends(get_notification_service)],
):
    removed = await service.cancel_scheduled_notification(job_id)
    return JobRemovedResponse(job_id=job_id, removed=removed)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    repo: Annotated[NotificationRepository, Depends(get_notification_repo)],
    user_id: str = Query(..., min_length=1),
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=500),
):
    return await repo.list_for_user(user_id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    repo: Annotated[NotificationRepository, Depends(get_notification_repo)],
    user_id: str = Query(..., min_length=1),
):
    notification = await repo.mark_read(notification_id, user_id)
    if notification is None:
        raise ResourceNotFoundException("notification", notification_id)
    return notification


@router.post("/read-all")
async def mark_all_notifications_read(
    repo: Annotated[NotificationRepository, Depends(get_notification_repo)],
    user_id: str = Query(..., min_length=1),
):
    return {"updated": await repo.mark_all_read(user_id)}
