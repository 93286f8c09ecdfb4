"""Job families: queue names, job names and their handlers."""

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

__all__ = [
    "EXTERNAL_SYNC_JOB",
    "NOTIFICATION_QUEUE",
    "SEND_NOTIFICATION_JOB",
    "SYNC_QUEUE",
    "NotificationJobHandler",
    "SyncJobHandler",
]
