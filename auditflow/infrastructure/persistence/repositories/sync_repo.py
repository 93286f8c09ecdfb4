"""Sync config and sync log repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.sync import SyncConfigResult, SyncLogResult, SyncResult
from auditflow.infrastructure.persistence.models.sync import SyncConfig, SyncLog
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.enums import SyncSourceType, SyncStatus
from auditflow.shared.utils.datetime import ensure_utc


def _config_to_result(c: SyncConfig) -> SyncConfigResult:
    """Map SyncConfig ORM to SyncConfigResult DTO."""
    return SyncConfigResult(
        id=c.id,
        name=c.name,
        source_type=c.source_type,
        is_active=c.is_active,
        settings=dict(c.settings or {}),
        field_mapping=dict(c.field_mapping or {}),
        last_sync_at=ensure_utc(c.last_sync_at),
        last_sync_status=c.last_sync_status,
        created_at=ensure_utc(c.created_at),  # type: ignore[arg-type]
    )


def _log_to_result(log: SyncLog) -> SyncLogResult:
    """Map SyncLog ORM to SyncLogResult DTO."""
    return SyncLogResult(
        id=log.id,
        config_id=log.config_id,
        status=log.status,
        triggered_by=log.triggered_by,
        job_id=log.job_id,
        total_records=log.total_records,
        created_count=log.created_count,
        updated_count=log.updated_count,
        success_count=log.success_count,
        failed_count=log.failed_count,
        skipped_count=log.skipped_count,
        error_message=log.error_message,
        error_details=list(log.error_details or []),
        started_at=ensure_utc(log.started_at),
        completed_at=ensure_utc(log.completed_at),
        duration_ms=log.duration_ms,
        created_at=ensure_utc(log.created_at),  # type: ignore[arg-type]
    )


class SyncConfigRepository(BaseRepository[SyncConfig]):
    """Sync configuration repository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, SyncConfig)

    async def get_by_id(self, config_id: str) -> SyncConfigResult | None:
        row = await self._get_row(config_id)
        return _config_to_result(row) if row else None

    async def list_configs(self) -> list[SyncConfigResult]:
        result = await self.db.execute(select(SyncConfig).order_by(SyncConfig.name))
        return [_config_to_result(row) for row in result.scalars().all()]

    async def create_config(
        self,
        name: str,
        source_type: SyncSourceType | str,
        *,
        settings: dict[str, Any] | None = None,
        field_mapping: dict[str, str] | None = None,
        is_active: bool = True,
    ) -> SyncConfigResult:
        row = SyncConfig(
            name=name,
            source_type=SyncSourceType(source_type).value,
            settings=dict(settings or {}),
            field_mapping=dict(field_mapping or {}),
            is_active=is_active,
        )
        return _config_to_result(await self._add(row))

    async def record_run(
        self, config_id: str, status: SyncStatus | str, at: datetime
    ) -> None:
        await self.db.execute(
            update(SyncConfig)
            .where(SyncConfig.id == config_id)
            .values(last_sync_at=at, last_sync_status=SyncStatus(status).value)
        )


class SyncLogRepository(BaseRepository[SyncLog]):
    """Sync log repository. Owns the pending -> running -> completed | failed moves."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, SyncLog)

    async def get_by_id(self, log_id: str, *, for_update: bool = False) -> SyncLogResult | None:
        row = await self._get_row(log_id, for_update=for_update)
        return _log_to_result(row) if row else None

    async def list_for_config(self, config_id: str, *, limit: int = 50) -> list[SyncLogResult]:
        result = await self.db.execute(
            select(SyncLog)
            .where(SyncLog.config_id == config_id)
            .order_by(SyncLog.created_at.desc())
            .limit(limit)
        )
        return [_log_to_result(row) for row in result.scalars().all()]

    async def create_log(
        self,
        config_id: str,
        *,
        status: SyncStatus = SyncStatus.PENDING,
        triggered_by: str | None = None,
        started_at: datetime | None = None,
    ) -> SyncLogResult:
        row = SyncLog(
            config_id=config_id,
            status=status.value,
            triggered_by=triggered_by,
            started_at=started_at,
            error_details=[],
        )
        return _log_to_result(await self._add(row))

    async def attach_job(self, log_id: str, job_id: str) -> SyncLogResult:
        row = await self._require_row(log_id)
        row.job_id = job_id
        return _log_to_result(await self._save(row))

    async def mark_running(self, log_id: str, started_at: datetime) -> SyncLogResult:
        row = await self._require_row(log_id, for_update=True)
        row.status = SyncStatus.RUNNING.value
        if row.started_at is None:
            row.started_at = started_at
        return _log_to_result(await self._save(row))

    async def mark_completed(
        self, log_id: str, result: SyncResult, completed_at: datetime
    ) -> SyncLogResult:
        row = await self._require_row(log_id, for_update=True)
        row.status = SyncStatus.COMPLETED.value
        row.total_records = result.total_records
        row.created_count = result.created_count
        row.updated_count = result.updated_count
        row.success_count = result.success_count
        row.failed_count = result.failed_count
        row.skipped_count = result.skipped_count
        row.error_details = [e.to_dict() for e in result.errors]
        row.error_message = None
        self._finish(row, completed_at)
        return _log_to_result(await self._save(row))

    async def mark_failed(
        self, log_id: str, error_message: str, completed_at: datetime
    ) -> SyncLogResult:
        row = await self._require_row(log_id, for_update=True)
        row.status = SyncStatus.FAILED.value
        row.error_message = error_message
        self._finish(row, completed_at)
        return _log_to_result(await self._save(row))

    @staticmethod
    def _finish(row: SyncLog, completed_at: datetime) -> None:
        row.completed_at = completed_at
        started = ensure_utc(row.started_at)
        if started is not None:
            row.duration_ms = int((completed_at - started).total_seconds() * 1000)
