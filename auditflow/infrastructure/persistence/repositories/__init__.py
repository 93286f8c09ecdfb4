"""Repositories: async SQLAlchemy data access returning application DTOs."""

from auditflow.infrastructure.persistence.repositories.assignment_cursor_repo import (
    AssignmentCursorRepository,
)
from auditflow.infrastructure.persistence.repositories.delegation_repo import (
    DelegationRepository,
)
from auditflow.infrastructure.persistence.repositories.notification_repo import (
    NotificationRepository,
)
from auditflow.infrastructure.persistence.repositories.step_assignment_repo import (
    StepAssignmentRepository,
)
from auditflow.infrastructure.persistence.repositories.sync_repo import (
    SyncConfigRepository,
    SyncLogRepository,
)
from auditflow.infrastructure.persistence.repositories.timeline_repo import (
    TimelineRepository,
)
from auditflow.infrastructure.persistence.repositories.user_directory_repo import (
    UserDirectoryRepository,
)
from auditflow.infrastructure.persistence.repositories.workflow_definition_repo import (
    WorkflowDefinitionRepository,
)
from auditflow.infrastructure.persistence.repositories.workflow_instance_repo import (
    WorkflowInstanceRepository,
)

__all__ = [
    "AssignmentCursorRepository",
    "DelegationRepository",
    "NotificationRepository",
    "StepAssignmentRepository",
    "SyncConfigRepository",
    "SyncLogRepository",
    "TimelineRepository",
    "UserDirectoryRepository",
    "WorkflowDefinitionRepository",
    "WorkflowInstanceRepository",
]
