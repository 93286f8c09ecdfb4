"""Durable SQL-backed job queue.

Rows in background_job are the queue. Producers call enqueue(); workers call
claim_next(), then complete() or fail(). Claiming is a conditional UPDATE
(waiting -> active only if still waiting), with FOR UPDATE SKIP LOCKED on
databases that support it, so several worker processes can share one queue.
Delivery is at-least-once: a claim holds a lock that the worker renews, and
an active job whose lock expired is returned to waiting by the next claim.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auditflow.application.dtos.jobs import JobOptions, JobResult, QueueStatus
from auditflow.core.config import Settings
from auditflow.domain.exceptions import (
    InvalidTransitionException,
    QueueClosedException,
    ResourceNotFoundException,
)
from auditflow.infrastructure.persistence.models.job import BackgroundJob
from auditflow.infrastructure.queue.backoff import compute_backoff
from auditflow.shared.enums import JobState
from auditflow.shared.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

_MAX_CLAIM_RACES = 3


def _to_result(j: BackgroundJob) -> JobResult:
    """Map BackgroundJob ORM to JobResult DTO."""
    return JobResult(
        id=j.id,
        queue_name=j.queue_name,
        name=j.name,
        payload=dict(j.payload or {}),
        state=j.state,
        attempts_made=j.attempts_made,
        max_attempts=j.max_attempts,
        backoff_type=j.backoff_type,
        backoff_delay_ms=j.backoff_delay_ms,
        priority=j.priority,
        idempotency_key=j.idempotency_key,
        scheduled_at=ensure_utc(j.scheduled_at),
        created_at=ensure_utc(j.created_at),  # type: ignore[arg-type]
        started_at=ensure_utc(j.started_at),
        finished_at=ensure_utc(j.finished_at),
        last_error=j.last_error,
        result=j.result,
    )


class JobQueue:
    """One named queue. Implements IJobQueue.

    Each operation runs in its own short transaction from session_factory, so
    the queue is usable from request handlers and worker processes alike.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue_name: str,
        *,
        clock: Callable[[], datetime] = utc_now,
        default_attempts: int = 3,
        default_backoff_ms: int = 1000,
        keep_completed_days: int = 7,
        keep_completed_count: int = 1000,
        keep_failed_days: int = 14,
        lock_duration_seconds: float = 30.0,
    ) -> None:
        self.session_factory = session_factory
        self.queue_name = queue_name
        self.clock = clock
        self.default_attempts = default_attempts
        self.default_backoff_ms = default_backoff_ms
        self.keep_completed_days = keep_completed_days
        self.keep_completed_count = keep_completed_count
        self.keep_failed_days = keep_failed_days
        self.lock_duration_seconds = lock_duration_seconds
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        queue_name: str,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> JobQueue:
        return cls(
            session_factory,
            queue_name,
            clock=clock,
            default_attempts=settings.job_default_attempts,
            default_backoff_ms=settings.job_backoff_base_ms,
            keep_completed_days=settings.job_keep_completed_days,
            keep_completed_count=settings.job_keep_completed_count,
            keep_failed_days=settings.job_keep_failed_days,
            lock_duration_seconds=settings.job_lock_duration_seconds,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Refuse further enqueues. Rows already stored are untouched."""
        if not self._closed:
            self._closed = True
            logger.info("Job queue %s closed", self.queue_name)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> JobResult:
        """Store a new job; an idempotency key already used in this queue returns that job."""
        if self._closed:
            raise QueueClosedException(self.queue_name)
        opts = options or JobOptions()
        now = self.clock()
        delayed = opts.delay_seconds > 0
        async with self.session_factory() as session:
            async with session.begin():
                if opts.idempotency_key:
                    existing = await self._find_by_key(session, opts.idempotency_key)
                    if existing is not None:
                        logger.info(
                            "Job %s already queued for key %s", existing.id, opts.idempotency_key
                        )
                        return _to_result(existing)
                job = BackgroundJob(
                    queue_name=self.queue_name,
                    name=name,
                    payload=dict(payload),
                    state=(JobState.DELAYED if delayed else JobState.WAITING).value,
                    priority=opts.priority,
                    attempts_made=0,
                    max_attempts=opts.attempts or self.default_attempts,
                    backoff_type=opts.backoff_type.value,
                    backoff_delay_ms=opts.backoff_delay_ms or self.default_backoff_ms,
                    idempotency_key=opts.idempotency_key,
                    scheduled_at=now + timedelta(seconds=opts.delay_seconds) if delayed else now,
                )
                if opts.idempotency_key:
                    try:
                        async with session.begin_nested():
                            session.add(job)
                    except IntegrityError:
                        existing = await self._find_by_key(session, opts.idempotency_key)
                        if existing is None:
                            raise
                        return _to_result(existing)
                else:
                    session.add(job)
                    await session.flush()
                await session.refresh(job)
                logger.debug("Enqueued %s job %s on %s", name, job.id, self.queue_name)
                return _to_result(job)

    async def remove(self, job_id: str) -> bool:
        """Delete a job that no worker has picked up (waiting or delayed)."""
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(BackgroundJob).where(
                        BackgroundJob.id == job_id,
                        BackgroundJob.queue_name == self.queue_name,
                        BackgroundJob.state.in_(
                            [JobState.WAITING.value, JobState.DELAYED.value]
                        ),
                    )
                )
                removed = (result.rowcount or 0) == 1
        if removed:
            logger.info("Removed job %s from %s", job_id, self.queue_name)
        return removed

    async def retry(self, job_id: str) -> JobResult:
        """Put a failed job back to waiting with a fresh attempt budget."""
        async with self.session_factory() as session:
            async with session.begin():
                job = await self._require(session, job_id)
                if job.state != JobState.FAILED.value:
                    raise InvalidTransitionException(
                        "Only failed jobs can be retried", current_status=job.state, job_id=job.id
                    )
                job.state = JobState.WAITING.value
                job.attempts_made = 0
                job.scheduled_at = self.clock()
                job.started_at = None
                job.finished_at = None
                await session.flush()
                await session.refresh(job)
                return _to_result(job)

    async def get_job(self, job_id: str) -> JobResult | None:
        async with self.session_factory() as session:
            job = await session.get(BackgroundJob, job_id)
            if job is None or job.queue_name != self.queue_name:
                return None
            return _to_result(job)

    async def get_queue_status(self) -> QueueStatus:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BackgroundJob.state, func.count(BackgroundJob.id))
                .where(BackgroundJob.queue_name == self.queue_name)
                .group_by(BackgroundJob.state)
            )
            counts = {state: int(count) for state, count in result.all()}
        return QueueStatus(**{state.value: counts.get(state.value, 0) for state in JobState})

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def claim_next(self) -> JobResult | None:
        """Recover stalled jobs, promote due delayed jobs, then move the best waiting job to active."""
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                await self._recover_stalled(session, now)
                await session.execute(
                    update(BackgroundJob)
                    .where(
                        BackgroundJob.queue_name == self.queue_name,
                        BackgroundJob.state == JobState.DELAYED.value,
                        BackgroundJob.scheduled_at <= now,
                    )
                    .values(state=JobState.WAITING.value)
                    .execution_options(synchronize_session=False)
                )
                for _ in range(_MAX_CLAIM_RACES):
                    job_id = (
                        await session.execute(
                            select(BackgroundJob.id)
                            .where(
                                BackgroundJob.queue_name == self.queue_name,
                                BackgroundJob.state == JobState.WAITING.value,
                            )
                            .order_by(
                                BackgroundJob.priority.desc(),
                                BackgroundJob.scheduled_at.asc(),
                                BackgroundJob.created_at.asc(),
                            )
                            .limit(1)
                            .with_for_update(skip_locked=True)
                        )
                    ).scalar_one_or_none()
                    if job_id is None:
                        return None
                    claimed = await session.execute(
                        update(BackgroundJob)
                        .where(
                            BackgroundJob.id == job_id,
                            BackgroundJob.state == JobState.WAITING.value,
                        )
                        .values(
                            state=JobState.ACTIVE.value,
                            attempts_made=BackgroundJob.attempts_made + 1,
                            started_at=now,
                            finished_at=None,
                            locked_until=now + timedelta(seconds=self.lock_duration_seconds),
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if (claimed.rowcount or 0) == 1:
                        job = await session.get(
                            BackgroundJob, job_id, populate_existing=True
                        )
                        return _to_result(job) if job else None
                    logger.debug("Lost claim race for job %s", job_id)
                return None

    async def complete(self, job_id: str, result: dict[str, Any] | None = None) -> JobResult:
        async with self.session_factory() as session:
            async with session.begin():
                job = await self._require(session, job_id)
                job.state = JobState.COMPLETED.value
                job.finished_at = self.clock()
                job.locked_until = None
                job.result = dict(result or {})
                job.last_error = None
                await session.flush()
                return _to_result(job)

    async def fail(self, job_id: str, error: str) -> JobResult:
        """Record a failed attempt: delayed retry with backoff, or failed when exhausted."""
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                job = await self._require(session, job_id)
                job.last_error = error
                job.locked_until = None
                if job.attempts_made < job.max_attempts:
                    delay = compute_backoff(
                        job.attempts_made, job.backoff_delay_ms, job.backoff_type
                    )
                    job.state = JobState.DELAYED.value
                    job.scheduled_at = now + timedelta(seconds=delay)
                    logger.warning(
                        "Job %s (%s) attempt %d/%d failed, retrying in %.1fs: %s",
                        job.id,
                        job.name,
                        job.attempts_made,
                        job.max_attempts,
                        delay,
                        error,
                    )
                else:
                    job.state = JobState.FAILED.value
                    job.finished_at = now
                    logger.error(
                        "Job %s (%s) failed after %d attempt(s): %s",
                        job.id,
                        job.name,
                        job.attempts_made,
                        error,
                    )
                await session.flush()
                return _to_result(job)

    async def requeue(self, job_id: str) -> None:
        """Return an interrupted active job to waiting without charging the attempt."""
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(BackgroundJob)
                    .where(
                        BackgroundJob.id == job_id,
                        BackgroundJob.state == JobState.ACTIVE.value,
                    )
                    .values(
                        state=JobState.WAITING.value,
                        attempts_made=BackgroundJob.attempts_made - 1,
                        started_at=None,
                        locked_until=None,
                    )
                    .execution_options(synchronize_session=False)
                )
        logger.info("Job %s returned to %s", job_id, self.queue_name)

    async def extend_lock(self, job_id: str) -> bool:
        """Push locked_until forward for a running job. False when the job is no longer active."""
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(BackgroundJob)
                    .where(
                        BackgroundJob.id == job_id,
                        BackgroundJob.state == JobState.ACTIVE.value,
                    )
                    .values(locked_until=now + timedelta(seconds=self.lock_duration_seconds))
                    .execution_options(synchronize_session=False)
                )
                return (result.rowcount or 0) == 1

    async def rate_limit_delay(self, max_jobs: int, window_seconds: float) -> float:
        """Seconds to wait before starting another job, given max_jobs per window.

        Derived from started_at of this queue's jobs, so the limit holds across
        every worker process sharing the queue.
        """
        now = self.clock()
        window_start = now - timedelta(seconds=window_seconds)
        async with self.session_factory() as session:
            result = await session.execute(
                select(BackgroundJob.started_at)
                .where(
                    BackgroundJob.queue_name == self.queue_name,
                    BackgroundJob.started_at.is_not(None),
                    BackgroundJob.started_at > window_start,
                )
                .order_by(BackgroundJob.started_at.desc())
                .limit(max_jobs)
            )
            starts = [ensure_utc(s) for s in result.scalars().all()]
        if len(starts) < max_jobs:
            return 0.0
        oldest_in_budget = starts[-1]
        wait = (oldest_in_budget + timedelta(seconds=window_seconds) - now).total_seconds()  # type: ignore[operator]
        return max(wait, 0.0)

    async def prune(self) -> int:
        """Delete old finished jobs: completed after N days or beyond the newest M, failed after K days."""
        now = self.clock()
        completed = JobState.COMPLETED.value
        async with self.session_factory() as session:
            async with session.begin():
                removed = 0
                result = await session.execute(
                    delete(BackgroundJob).where(
                        BackgroundJob.queue_name == self.queue_name,
                        BackgroundJob.state == completed,
                        BackgroundJob.finished_at
                        < now - timedelta(days=self.keep_completed_days),
                    )
                )
                removed += result.rowcount or 0
                overflow = (
                    select(BackgroundJob.id)
                    .where(
                        BackgroundJob.queue_name == self.queue_name,
                        BackgroundJob.state == completed,
                    )
                    .order_by(BackgroundJob.finished_at.desc())
                    .offset(self.keep_completed_count)
                )
                overflow_ids = list((await session.execute(overflow)).scalars().all())
                if overflow_ids:
                    result = await session.execute(
                        delete(BackgroundJob).where(BackgroundJob.id.in_(overflow_ids))
                    )
                    removed += result.rowcount or 0
                result = await session.execute(
                    delete(BackgroundJob).where(
                        BackgroundJob.queue_name == self.queue_name,
                        BackgroundJob.state == JobState.FAILED.value,
                        BackgroundJob.finished_at < now - timedelta(days=self.keep_failed_days),
                    )
                )
                removed += result.rowcount or 0
        if removed:
            logger.info("Pruned %d finished job(s) from %s", removed, self.queue_name)
        return removed

    # ------------------------------------------------------------------

    async def _find_by_key(self, session: AsyncSession, key: str) -> BackgroundJob | None:
        result = await session.execute(
            select(BackgroundJob).where(
                BackgroundJob.queue_name == self.queue_name,
                BackgroundJob.idempotency_key == key,
            )
        )
        return result.scalar_one_or_none()

    async def _recover_stalled(self, session: AsyncSession, now: datetime) -> None:
        """Active jobs whose lock expired: back to waiting, or failed when no attempt is left."""
        stalled = (
            BackgroundJob.queue_name == self.queue_name,
            BackgroundJob.state == JobState.ACTIVE.value,
            BackgroundJob.locked_until < now,
        )
        exhausted = await session.execute(
            update(BackgroundJob)
            .where(*stalled, BackgroundJob.attempts_made >= BackgroundJob.max_attempts)
            .values(
                state=JobState.FAILED.value,
                finished_at=now,
                locked_until=None,
                last_error="Job stalled: worker lock expired",
            )
            .execution_options(synchronize_session=False)
        )
        returned = await session.execute(
            update(BackgroundJob)
            .where(*stalled)
            .values(
                state=JobState.WAITING.value,
                scheduled_at=now,
                locked_until=None,
                last_error="Job stalled: worker lock expired",
            )
            .execution_options(synchronize_session=False)
        )
        failed_count, waiting_count = exhausted.rowcount or 0, returned.rowcount or 0
        if failed_count or waiting_count:
            logger.warning(
                "Recovered stalled jobs on %s: %d requeued, %d failed",
                self.queue_name,
                waiting_count,
                failed_count,
            )

    async def _require(self, session: AsyncSession, job_id: str) -> BackgroundJob:
        job = await session.get(BackgroundJob, job_id, with_for_update=True)
        if job is None or job.queue_name != self.queue_name:
            raise ResourceNotFoundException("background_job", job_id)
        return job
