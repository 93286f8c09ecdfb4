"""External sync orchestration: configs, manual triggers, CSV import, cancel."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.jobs import JobOptions, QueueStatus
from auditflow.application.dtos.sync import (
    SyncConfigResult,
    SyncLogResult,
    SyncResult,
    SyncTriggerResult,
)
from auditflow.application.interfaces import IJobQueue
from auditflow.domain.exceptions import (
    InvalidTransitionException,
    ResourceNotFoundException,
    UnqueueableOperationException,
    ValidationException,
)
from auditflow.infrastructure.jobs.sync_jobs import EXTERNAL_SYNC_JOB, sync_idempotency_key
from auditflow.infrastructure.persistence.repositories.sync_repo import (
    SyncConfigRepository,
    SyncLogRepository,
)
from auditflow.infrastructure.persistence.repositories.user_directory_repo import (
    UserDirectoryRepository,
)
from auditflow.infrastructure.sync.csv_import import CsvImportStrategy
from auditflow.shared.enums import SyncSourceType, SyncStatus
from auditflow.shared.telemetry import traced
from auditflow.shared.telemetry.logging import get_logger
from auditflow.shared.utils.datetime import utc_now

logger = get_logger(__name__)


class SyncService:
    """Request-side sync operations over one AsyncSession.

    Commits its own units of work: the queue writes through its own session,
    so the pending log is committed before its job exists. The idempotency
    key ties the job to the log, so a retried request cannot start a second run.
    """

    def __init__(
        self,
        db: AsyncSession,
        queue: IJobQueue,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.queue = queue
        self.configs = SyncConfigRepository(db)
        self.logs = SyncLogRepository(db)
        self.clock = clock

    async def create_config(
        self,
        name: str,
        source_type: SyncSourceType | str,
        *,
        settings: dict[str, Any] | None = None,
        field_mapping: dict[str, str] | None = None,
        is_active: bool = True,
    ) -> SyncConfigResult:
        if not name or not name.strip():
            raise ValidationException("Config name is required", field="name")
        try:
            source = SyncSourceType(source_type)
        except ValueError as e:
            raise ValidationException(
                f"Unknown source type: {source_type}", field="source_type"
            ) from e
        if source is SyncSourceType.REST_API and not (settings or {}).get("base_url"):
            raise ValidationException("REST sync needs settings.base_url", field="settings")
        config = await self.configs.create_config(
            name.strip(),
            source,
            settings=settings,
            field_mapping=field_mapping,
            is_active=is_active,
        )
        await self.db.commit()
        return config

    async def list_configs(self) -> list[SyncConfigResult]:
        return await self.configs.list_configs()

    async def get_config(self, config_id: str) -> SyncConfigResult:
        config = await self.configs.get_by_id(config_id)
        if config is None:
            raise ResourceNotFoundException("sync_config", config_id)
        return config

    async def list_logs(self, config_id: str, limit: int = 50) -> list[SyncLogResult]:
        await self.get_config(config_id)
        return await self.logs.list_for_config(config_id, limit=limit)

    @traced("sync.trigger_manual")
    async def trigger_manual_sync(
        self, config_id: str, triggered_by: str | None = None
    ) -> SyncTriggerResult:
        """Create a pending log and queue the job that runs it.

        Raises:
            ResourceNotFoundException: unknown config.
            ValidationException: config inactive.
            UnqueueableOperationException: source needs request input (csv,
                webhook, manual); nothing is written.
            QueueClosedException: the queue is shutting down; the log is
                marked failed before the error propagates.
        """
        config = await self.get_config(config_id)
        if not config.is_active:
            raise ValidationException(f"Sync config '{config.name}' is inactive")
        source = SyncSourceType(config.source_type)
        if not source.is_queueable:
            raise UnqueueableOperationException(
                f"{source.value} sync",
                "this source needs request input; use the import endpoint",
            )
        log = await self.logs.create_log(config.id, triggered_by=triggered_by)
        await self.db.commit()
        try:
            job = await self.queue.enqueue(
                EXTERNAL_SYNC_JOB,
                {"sync_log_id": log.id, "config_id": config.id},
                JobOptions(idempotency_key=sync_idempotency_key(log.id)),
            )
        except Exception as e:
            await self.logs.mark_failed(log.id, f"Could not queue sync job: {e}", self.clock())
            await self.db.commit()
            logger.error("Sync log %s failed: job not queued (%s)", log.id, e)
            raise
        log = await self.logs.attach_job(log.id, job.id)
        await self.db.commit()
        logger.info("Queued sync job %s for config %s (log %s)", job.id, config.name, log.id)
        return SyncTriggerResult(sync_log=log, job_id=job.id)

    @traced("sync.import_csv")
    async def import_csv(
        self, config_id: str, content: str | bytes, triggered_by: str | None = None
    ) -> SyncLogResult:
        """Run a CSV import in-request and return its finished log."""
        config = await self.get_config(config_id)
        if SyncSourceType(config.source_type) is not SyncSourceType.CSV:
            raise ValidationException(
                f"Sync config '{config.name}' is not a CSV source", field="config_id"
            )
        started = self.clock()
        log = await self.logs.create_log(
            config.id, status=SyncStatus.RUNNING, triggered_by=triggered_by, started_at=started
        )
        strategy = CsvImportStrategy(config, UserDirectoryRepository(self.db), content)
        try:
            result: SyncResult = await strategy.sync(triggered_by)
        except ValidationException as e:
            now = self.clock()
            finished = await self.logs.mark_failed(log.id, e.message, now)
            await self.configs.record_run(config.id, SyncStatus.FAILED, now)
        else:
            now = self.clock()
            finished = await self.logs.mark_completed(log.id, result, now)
            await self.configs.record_run(config.id, SyncStatus.COMPLETED, now)
        await self.db.commit()
        return finished

    async def cancel_sync_job(self, job_id: str) -> SyncLogResult | None:
        """Remove a sync job that has not started and mark its log failed.

        Raises:
            ResourceNotFoundException: unknown job.
            InvalidTransitionException: the job is already running or finished.
        """
        job = await self.queue.get_job(job_id)
        if job is None:
            raise ResourceNotFoundException("background_job", job_id)
        if not await self.queue.remove(job_id):
            raise InvalidTransitionException(
                "Sync job can no longer be cancelled", current_status=job.state, job_id=job_id
            )
        log_id = job.payload.get("sync_log_id")
        if not log_id:
            return None
        logger.info("Cancelled sync job %s (log %s)", job_id, log_id)
        log = await self.logs.mark_failed(log_id, "Cancelled by user", self.clock())
        await self.db.commit()
        return log

    async def get_queue_status(self) -> QueueStatus:
        return await self.queue.get_queue_status()
