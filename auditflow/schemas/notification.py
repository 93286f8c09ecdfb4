"""Notification API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from auditflow.shared.enums import NotificationType


class NotificationSendRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    message: str = ""
    type: NotificationType = NotificationType.INFO
    link: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BulkNotificationRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    message: str = ""
    type: NotificationType = NotificationType.INFO
    link: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScheduleNotificationRequest(NotificationSendRequest):
    send_at: datetime


class NotificationJobResponse(BaseModel):
    """A queued notification: poll the job or cancel it while scheduled."""

    job_id: str
    state: str
    scheduled_at: datetime | None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    message: str
    type: str
    link: str | None
    is_read: bool
    metadata: dict[str, Any]
    created_at: datetime
