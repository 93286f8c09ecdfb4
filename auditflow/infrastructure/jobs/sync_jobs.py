"""Sync job family: drives one SyncLog through pending -> running -> completed | failed."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditflow.application.dtos.jobs import JobResult
from auditflow.domain.exceptions import ResourceNotFoundException, ValidationException
from auditflow.infrastructure.persistence.repositories.sync_repo import (
    SyncConfigRepository,
    SyncLogRepository,
)
from auditflow.infrastructure.persistence.repositories.user_directory_repo import (
    UserDirectoryRepository,
)
from auditflow.infrastructure.sync.directory import DirectoryClientFactory
from auditflow.infrastructure.sync.factory import build_queued_strategy
from auditflow.shared.enums import SyncStatus
from auditflow.shared.telemetry import add_span_attributes
from auditflow.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)

SYNC_QUEUE = "external-sync"
EXTERNAL_SYNC_JOB = "external-sync"


def sync_idempotency_key(sync_log_id: str) -> str:
    return f"sync-log:{sync_log_id}"


class SyncJobHandler:
    """Handler for external-sync jobs.

    User upserts and the completed log commit in one transaction. A failing
    attempt leaves the log running so the retry resumes it; only the final
    attempt marks it failed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        http_client: httpx.AsyncClient | None = None,
        directory_client_factory: DirectoryClientFactory | None = None,
        page_size: int = 100,
        timeout_seconds: float = 30.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.session_factory = session_factory
        self.http_client = http_client
        self.directory_client_factory = directory_client_factory
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    async def __call__(self, job: JobResult) -> dict[str, Any]:
        log_id = job.payload.get("sync_log_id")
        if not log_id:
            raise ValidationException("Sync job has no sync_log_id", field="sync_log_id")
        add_span_attributes(sync_log_id=log_id)

        async with self.session_factory() as session:
            async with session.begin():
                logs = SyncLogRepository(session)
                log = await logs.get_by_id(log_id, for_update=True)
                if log is None:
                    raise ResourceNotFoundException("sync_log", log_id)
                if log.status in (SyncStatus.COMPLETED.value, SyncStatus.FAILED.value):
                    logger.info("Sync log %s already %s; nothing to do", log_id, log.status)
                    return {"sync_log_id": log_id, "status": log.status, "skipped": True}
                config = await SyncConfigRepository(session).get_by_id(log.config_id)
                if config is None:
                    # retrying cannot bring the config back
                    message = f"Sync config {log.config_id} no longer exists"
                    await logs.mark_failed(log_id, message, self.clock())
                    logger.error("Sync log %s failed: %s", log_id, message)
                    return {
                        "sync_log_id": log_id,
                        "status": SyncStatus.FAILED.value,
                        "error": message,
                    }
                await logs.mark_running(log_id, self.clock())

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    strategy = build_queued_strategy(
                        config,
                        UserDirectoryRepository(session),
                        http_client=self.http_client,
                        directory_client_factory=self.directory_client_factory,
                        page_size=self.page_size,
                        timeout_seconds=self.timeout_seconds,
                    )
                    result = await strategy.sync(log.triggered_by)
                    now = self.clock()
                    await SyncLogRepository(session).mark_completed(log_id, result, now)
                    await SyncConfigRepository(session).record_run(
                        config.id, SyncStatus.COMPLETED, now
                    )
        except Exception as e:
            if job.is_final_attempt:
                await self._mark_failed(log_id, config.id, f"{type(e).__name__}: {e}")
            else:
                logger.warning(
                    "Sync log %s attempt %d/%d failed; will retry: %s",
                    log_id,
                    job.attempts_made,
                    job.max_attempts,
                    e,
                )
            raise

        logger.info(
            "Sync log %s completed: %d created, %d updated, %d skipped, %d failed",
            log_id,
            result.created_count,
            result.updated_count,
            result.skipped_count,
            result.failed_count,
        )
        return {"sync_log_id": log_id, "status": SyncStatus.COMPLETED.value, **result.to_dict()}

    async def _mark_failed(self, log_id: str, config_id: str, message: str) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                now = self.clock()
                await SyncLogRepository(session).mark_failed(log_id, message, now)
                await SyncConfigRepository(session).record_run(config_id, SyncStatus.FAILED, now)
        logger.error("Sync log %s failed: %s", log_id, message)
