"""Background job ORM model (durable queue)."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from auditflow.infrastructure.persistence.database import Base
from auditflow.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
)
from auditflow.infrastructure.persistence.models.workflow import _in_values
from auditflow.shared.enums import BackoffType, JobState


class BackgroundJob(CuidMixin, TimestampMixin, Base):
    """One durable unit of asynchronous work. Table: background_job.

    Lifecycle is owned by JobQueue; producers only enqueue. The unique
    (queue_name, idempotency_key) pair makes re-enqueueing a no-op. An active
    row whose locked_until has passed belongs to a worker that stopped
    renewing its lock.
    """

    __tablename__ = "background_job"

    queue_name: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    state: Mapped[str] = mapped_column(
        String, nullable=False, default=JobState.WAITING.value
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    attempts_made: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    backoff_type: Mapped[str] = mapped_column(
        String, nullable=False, default=BackoffType.EXPONENTIAL.value
    )
    backoff_delay_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    idempotency_key: Mapped[str | None] = mapped_column(String, nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "queue_name", "idempotency_key", name="uq_background_job_idempotency"
        ),
        Index("ix_background_job_queue_state", "queue_name", "state", "priority"),
        Index("ix_background_job_queue_started", "queue_name", "started_at"),
        Index("ix_background_job_queue_locked", "queue_name", "state", "locked_until"),
        CheckConstraint(
            _in_values("state", JobState.values()),
            name="background_job_state_check",
        ),
        CheckConstraint(
            _in_values("backoff_type", BackoffType.values()),
            name="background_job_backoff_type_check",
        ),
    )
