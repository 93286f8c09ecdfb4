"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for DB sessions, the workflow runtime, services
and job queues. Routes depend only on these, never on infrastructure
construction.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.services.definition_service import WorkflowDefinitionService
from auditflow.application.services.delegation_service import DelegationService
from auditflow.application.services.workflow_runtime import WorkflowRuntime
from auditflow.application.use_cases.process_overdue import (
    ProcessOverdueAssignmentsUseCase,
)
from auditflow.application.use_cases.workflow_analytics import (
    GetWorkflowAnalyticsUseCase,
)
from auditflow.core.config import get_settings
from auditflow.infrastructure.jobs import NOTIFICATION_QUEUE, SYNC_QUEUE
from auditflow.infrastructure.persistence.database import (
    get_db,
    get_db_transactional,
    get_session_factory,
)
from auditflow.infrastructure.persistence.repositories import (
    DelegationRepository,
    NotificationRepository,
    StepAssignmentRepository,
    TimelineRepository,
    UserDirectoryRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from auditflow.infrastructure.queue import JobQueue
from auditflow.infrastructure.services import (
    DeferredAssignmentNotifier,
    NotificationService,
    SyncService,
    build_workflow_runtime,
)


def get_queue(request: Request, queue_name: str) -> JobQueue:
    """Queue by name from app.state.queues (built in lifespan); 404 if unknown."""
    queues: dict[str, JobQueue] = getattr(request.app.state, "queues", {})
    queue = queues.get(queue_name)
    if queue is None:
        raise HTTPException(status_code=404, detail=f"Unknown queue: {queue_name}")
    return queue


def get_notification_queue(request: Request) -> JobQueue:
    return get_queue(request, NOTIFICATION_QUEUE)


def get_sync_queue(request: Request) -> JobQueue:
    return get_queue(request, SYNC_QUEUE)


@asynccontextmanager
async def _runtime_scope(
    request: Request, *, transactional: bool
) -> AsyncIterator[WorkflowRuntime]:
    notifier = DeferredAssignmentNotifier()
    async with get_session_factory()() as session:
        if transactional:
            async with session.begin():
                yield build_workflow_runtime(session, get_settings(), notifier=notifier)
        else:
            yield build_workflow_runtime(session, get_settings(), notifier=notifier)
    # Only reached when the transaction committed.
    if len(notifier):
        await notifier.flush(NotificationService(get_notification_queue(request)))


async def get_workflow_runtime(request: Request) -> AsyncIterator[WorkflowRuntime]:
    """Runtime for transitions: one transaction per request, notifications after commit."""
    async with _runtime_scope(request, transactional=True) as runtime:
        yield runtime


async def get_workflow_runtime_readonly(request: Request) -> AsyncIterator[WorkflowRuntime]:
    """Runtime for queries (no transaction)."""
    async with _runtime_scope(request, transactional=False) as runtime:
        yield runtime


async def get_definition_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowDefinitionService:
    """Definition service for reads."""
    return WorkflowDefinitionService(WorkflowDefinitionRepository(db))


async def get_definition_service_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> WorkflowDefinitionService:
    """Definition service for publish/update (transactional)."""
    return WorkflowDefinitionService(WorkflowDefinitionRepository(db))


async def get_delegation_service(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> DelegationService:
    return DelegationService(DelegationRepository(db), UserDirectoryRepository(db))


async def get_analytics_use_case(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> GetWorkflowAnalyticsUseCase:
    return GetWorkflowAnalyticsUseCase(
        WorkflowInstanceRepository(db),
        StepAssignmentRepository(db),
        TimelineRepository(db),
    )


async def get_process_overdue_use_case(
    runtime: Annotated[WorkflowRuntime, Depends(get_workflow_runtime)],
) -> ProcessOverdueAssignmentsUseCase:
    return ProcessOverdueAssignmentsUseCase(runtime)


async def get_notification_service(
    queue: Annotated[JobQueue, Depends(get_notification_queue)],
) -> NotificationService:
    return NotificationService(queue)


async def get_notification_repo(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> NotificationRepository:
    return NotificationRepository(db)


async def get_sync_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    queue: Annotated[JobQueue, Depends(get_sync_queue)],
) -> SyncService:
    """Sync service; it commits its own units of work (see SyncService)."""
    return SyncService(db, queue)
