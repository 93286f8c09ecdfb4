"""DTOs for external user/org synchronization (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class SyncRecordError:
    """Failure for one source record."""

    record: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"record": self.record, "message": self.message}


@dataclass
class SyncResult:
    """Structured outcome every sync strategy returns."""

    success: bool = True
    total_records: int = 0
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    errors: list[SyncRecordError] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return self.created_count + self.updated_count

    def record_error(self, record: str, message: str) -> None:
        self.failed_count += 1
        self.errors.append(SyncRecordError(record=record, message=message))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "total_records": self.total_records,
            "success_count": self.success_count,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class UserRecord:
    """Source record normalized through the config's field mapping."""

    email: str
    name: str | None = None
    external_id: str | None = None
    is_active: bool = True
    roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class SyncConfigResult:
    id: str
    name: str
    source_type: str
    is_active: bool
    settings: dict[str, Any]
    field_mapping: dict[str, str]
    last_sync_at: datetime | None
    last_sync_status: str | None
    created_at: datetime


@dataclass(frozen=True)
class SyncLogResult:
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


@dataclass(frozen=True)
class SyncTriggerResult:
    """A pending sync log and the job that will drive it."""

    sync_log: SyncLogResult
    job_id: str
