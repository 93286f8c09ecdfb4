"""DTOs for the background job queue (no dependency on ORM)."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from auditflow.shared.enums import BackoffType


@dataclass(frozen=True)
class JobOptions:
    """Per-job options. None means "use the queue default"."""

    delay_seconds: float = 0.0
    priority: int = 0
    idempotency_key: str | None = None
    attempts: int | None = None
    backoff_type: BackoffType = BackoffType.EXPONENTIAL
    backoff_delay_ms: int | None = None


@dataclass(frozen=True)
class JobResult:
    """Snapshot of one background job row."""

    id: str
    queue_name: str
    name: str
    payload: dict[str, Any]
    state: str
    attempts_made: int
    max_attempts: int
    backoff_type: str
    backoff_delay_ms: int
    priority: int
    idempotency_key: str | None
    scheduled_at: datetime | None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    last_error: str | None = None
    result: dict[str, Any] | None = None

    @property
    def is_final_attempt(self) -> bool:
        return self.attempts_made >= self.max_attempts


@dataclass(frozen=True)
class QueueStatus:
    """Job counts per state for one queue."""

    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
