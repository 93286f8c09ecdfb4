"""Infrastructure services: orchestration that touches the queue and persistence."""

from auditflow.infrastructure.services.notification_service import (
    DeferredAssignmentNotifier,
    NotificationService,
)
from auditflow.infrastructure.services.sync_service import SyncService
from auditflow.infrastructure.services.workflow_factory import (
    build_assignment_resolver,
    build_workflow_runtime,
)

__all__ = [
    "DeferredAssignmentNotifier",
    "NotificationService",
    "SyncService",
    "build_assignment_resolver",
    "build_workflow_runtime",
]
