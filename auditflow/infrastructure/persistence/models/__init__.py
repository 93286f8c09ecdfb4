"""Persistence models: ORM entities and mixins.

Importing this package registers every table on Base.metadata.
"""

from auditflow.infrastructure.persistence.models.directory import (
    AppUser,
    AssignmentCursor,
    Delegation,
    Role,
    UserRole,
)
from auditflow.infrastructure.persistence.models.job import BackgroundJob
from auditflow.infrastructure.persistence.models.mixins import (
    CreatedAtMixin,
    CuidMixin,
    TimestampMixin,
)
from auditflow.infrastructure.persistence.models.notification import Notification
from auditflow.infrastructure.persistence.models.sync import SyncConfig, SyncLog
from auditflow.infrastructure.persistence.models.workflow import (
    StepAssignment,
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowTimelineEvent,
)

__all__ = [
    "AppUser",
    "AssignmentCursor",
    "BackgroundJob",
    "CreatedAtMixin",
    "CuidMixin",
    "Delegation",
    "Notification",
    "Role",
    "StepAssignment",
    "SyncConfig",
    "SyncLog",
    "TimestampMixin",
    "UserRole",
    "WorkflowDefinition",
    "WorkflowInstance",
    "WorkflowTimelineEvent",
]
