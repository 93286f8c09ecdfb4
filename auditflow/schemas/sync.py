"""External sync API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from auditflow.shared.enums import SyncSourceType


class SyncConfigCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    source_type: SyncSourceType
    settings: dict[str, Any] = Field(default_factory=dict)
    field_mapping: dict[str, str] = Field(
        default_factory=dict, description="Source path -> internal field"
    )
    is_active: bool = True


class SyncConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    source_type: str
    is_active: bool
    field_mapping: dict[str, str]
    last_sync_at: datetime | None
    last_sync_status: str | None
    created_at: datetime


class SyncTriggerRequest(BaseModel):
    triggered_by: str | None = None


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    config_id: str
    status: str
    triggered_by: str | None
    job_id: str | None
    total_records: int
    created_count: int
    updated_count: int
    success_count: int
    failed_count: int
    skipped_count: int
    error_message: str | None
    error_details: list[dict[str, Any]]
    started_at: datetime | None
    completed_at: datetime | None
    duration_ms: int | None
    created_at: datetime


class SyncTriggerResponse(BaseModel):
    sync_log: SyncLogResponse
    job_id: str
