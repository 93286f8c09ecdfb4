"""Builds the process's queues, handlers and workers from Settings.

Shared by the API lifespan (enqueue side, optional in-process workers) and
scripts/run_job_worker.py (dedicated worker process).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditflow.application.interfaces import IRealtimeChannel
from auditflow.core.config import Settings
from auditflow.infrastructure.jobs.notifications import (
    NOTIFICATION_QUEUE,
    SEND_NOTIFICATION_JOB,
    NotificationJobHandler,
)
from auditflow.infrastructure.jobs.sync_jobs import (
    EXTERNAL_SYNC_JOB,
    SYNC_QUEUE,
    SyncJobHandler,
)
from auditflow.infrastructure.queue import JobHandler, JobQueue, JobWorker, QueueHost
from auditflow.infrastructure.sync.directory import DirectoryClientFactory


def build_queues(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> dict[str, JobQueue]:
    return {
        name: JobQueue.from_settings(session_factory, name, settings)
        for name in (NOTIFICATION_QUEUE, SYNC_QUEUE)
    }


def build_handlers(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    channel: IRealtimeChannel | None = None,
    http_client: httpx.AsyncClient | None = None,
    directory_client_factory: DirectoryClientFactory | None = None,
) -> dict[str, dict[str, JobHandler]]:
    """Handlers per queue name, keyed by job name."""
    return {
        NOTIFICATION_QUEUE: {
            SEND_NOTIFICATION_JOB: NotificationJobHandler(session_factory, channel),
        },
        SYNC_QUEUE: {
            EXTERNAL_SYNC_JOB: SyncJobHandler(
                session_factory,
                http_client=http_client,
                directory_client_factory=directory_client_factory,
                page_size=settings.sync_rest_page_size,
                timeout_seconds=settings.sync_http_timeout_seconds,
            ),
        },
    }


def build_queue_host(
    queues: dict[str, JobQueue],
    settings: Settings,
    *,
    handlers: dict[str, dict[str, JobHandler]] | None = None,
    dispose: Callable[[], Awaitable[None]] | None = None,
) -> QueueHost:
    """QueueHost over queues; workers are attached only when handlers are given."""
    pairs: list[tuple[JobQueue, JobWorker | None]] = []
    for name, queue in queues.items():
        worker = None
        if handlers is not None:
            worker = JobWorker.from_settings(queue, handlers.get(name, {}), settings)
        pairs.append((queue, worker))
    return QueueHost(pairs, dispose=dispose)
