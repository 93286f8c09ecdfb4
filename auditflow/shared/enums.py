"""Shared enumerations for auditflow.

Cross-cutting enums used by application and infrastructure (job queue,
notifications, external sync). Workflow graph and runtime enums live in
auditflow.domain.enums.
"""

from enum import Enum


class _ValuesMixin:
    """Mixin that adds a values() classmethod to str Enums."""

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid values as strings."""
        return [member.value for member in cls]


class JobState(_ValuesMixin, str, Enum):
    """Background job lifecycle state."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"


class BackoffType(_ValuesMixin, str, Enum):
    """Retry backoff policy for background jobs."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class NotificationType(_ValuesMixin, str, Enum):
    """Kind of in-app notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    TASK = "task"


class SyncSourceType(_ValuesMixin, str, Enum):
    """Source system kind for external user/org synchronization."""

    LDAP = "ldap"
    CSV = "csv"
    REST_API = "rest_api"
    WEBHOOK = "webhook"
    MANUAL = "manual"

    @property
    def is_queueable(self) -> bool:
        """Whether a background job can drive this source without request input."""
        return self in (SyncSourceType.LDAP, SyncSourceType.REST_API)


class SyncStatus(_ValuesMixin, str, Enum):
    """SyncLog state machine: pending -> running -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
