"""Background job API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    queue_name: str
    name: str
    payload: dict[str, Any]
    state: str
    attempts_made: int
    max_attempts: int
    priority: int
    idempotency_key: str | None
    scheduled_at: datetime | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None
    last_error: str | None
    result: dict[str, Any] | None


class QueueStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    waiting: int
    active: int
    completed: int
    failed: int
    delayed: int


class JobRemovedResponse(BaseModel):
    job_id: str
    removed: bool
