"""Job worker: pulls jobs from one JobQueue and runs named handlers.

Concurrency is bounded by a semaphore; starts are additionally rate limited
across every worker sharing the queue (max jobs per window). A handler that
raises fails the attempt and JobQueue schedules the retry. While a handler
runs, its job lock is renewed at half the lock duration. Cancellation during
shutdown returns the job to waiting so another worker can run it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from auditflow.application.dtos.jobs import JobResult
from auditflow.core.config import Settings
from auditflow.infrastructure.queue.job_queue import JobQueue
from auditflow.shared.telemetry import add_span_attributes, traced

logger = logging.getLogger(__name__)

JobHandler = Callable[[JobResult], Awaitable[dict[str, Any] | None]]


class JobWorker:
    """Runs jobs from a queue until stopped."""

    def __init__(
        self,
        queue: JobQueue,
        handlers: dict[str, JobHandler],
        *,
        concurrency: int = 2,
        rate_limit_max: int = 10,
        rate_limit_window_seconds: float = 10.0,
        poll_interval_seconds: float = 1.0,
        shutdown_timeout_seconds: float = 30.0,
    ) -> None:
        self.queue = queue
        self.handlers = dict(handlers)
        self.concurrency = max(1, concurrency)
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window_seconds = rate_limit_window_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self._slots = asyncio.Semaphore(self.concurrency)
        self._stopping = asyncio.Event()
        self._in_flight: set[asyncio.Task[None]] = set()
        self._loop_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls, queue: JobQueue, handlers: dict[str, JobHandler], settings: Settings
    ) -> JobWorker:
        return cls(
            queue,
            handlers,
            concurrency=settings.worker_concurrency,
            rate_limit_max=settings.worker_rate_limit_max,
            rate_limit_window_seconds=settings.worker_rate_limit_window_seconds,
            poll_interval_seconds=settings.worker_poll_interval_seconds,
            shutdown_timeout_seconds=settings.worker_shutdown_timeout_seconds,
        )

    @property
    def accepting(self) -> bool:
        return not self._stopping.is_set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> asyncio.Task[None]:
        """Start the polling loop in the background."""
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(
                self._run(), name=f"job-worker:{self.queue.queue_name}"
            )
            logger.info(
                "Job worker started on %s (concurrency=%d, rate=%d/%ss)",
                self.queue.queue_name,
                self.concurrency,
                self.rate_limit_max,
                self.rate_limit_window_seconds,
            )
        return self._loop_task

    def stop_accepting(self) -> None:
        """Stop claiming new jobs; running jobs continue."""
        if not self._stopping.is_set():
            self._stopping.set()
            logger.info("Job worker on %s stopped accepting jobs", self.queue.queue_name)

    async def close(self) -> None:
        """Wait for in-flight jobs up to the shutdown timeout, then cancel the rest."""
        self.stop_accepting()
        if self._loop_task is not None:
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None
        pending = set(self._in_flight)
        if not pending:
            return
        done, still_running = await asyncio.wait(
            pending, timeout=self.shutdown_timeout_seconds
        )
        if still_running:
            logger.warning(
                "Cancelling %d job(s) on %s after %.0fs shutdown timeout",
                len(still_running),
                self.queue.queue_name,
                self.shutdown_timeout_seconds,
            )
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)
        logger.info("Job worker on %s closed", self.queue.queue_name)

    async def process_next(self) -> JobResult | None:
        """Claim and run one job inline. Returns the claimed job, or None if idle."""
        job = await self.queue.claim_next()
        if job is None:
            return None
        await self._execute(job)
        return job

    async def run_until_idle(self, max_jobs: int = 1000) -> int:
        """Run due jobs inline until none is waiting. Returns how many ran."""
        processed = 0
        while processed < max_jobs:
            if await self.process_next() is None:
                break
            processed += 1
        return processed

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self._slots.acquire()
            try:
                if self._stopping.is_set():
                    self._slots.release()
                    break
                wait = await self.queue.rate_limit_delay(
                    self.rate_limit_max, self.rate_limit_window_seconds
                )
                if wait > 0:
                    self._slots.release()
                    await self._sleep(wait)
                    continue
                job = await self.queue.claim_next()
            except Exception:
                self._slots.release()
                logger.exception("Polling %s failed", self.queue.queue_name)
                await self._sleep(self.poll_interval_seconds)
                continue
            if job is None:
                self._slots.release()
                await self._sleep(self.poll_interval_seconds)
                continue
            task = asyncio.create_task(self._run_slot(job), name=f"job:{job.id}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    async def _run_slot(self, job: JobResult) -> None:
        try:
            await self._execute(job)
        finally:
            self._slots.release()

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early when the worker is stopped."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except TimeoutError:
            pass

    @traced("jobs.execute")
    async def _execute(self, job: JobResult) -> None:
        add_span_attributes(
            job_id=job.id, job_name=job.name, queue=job.queue_name, attempt=job.attempts_made
        )
        handler = self.handlers.get(job.name)
        if handler is None:
            logger.error("No handler for job %s (%s)", job.name, job.id)
            await self.queue.fail(job.id, f"No handler registered for job '{job.name}'")
            return
        heartbeat = asyncio.create_task(self._keep_lock(job), name=f"job-lock:{job.id}")
        try:
            result = await handler(job)
        except asyncio.CancelledError:
            logger.warning("Job %s (%s) interrupted; returning to queue", job.id, job.name)
            await asyncio.shield(self.queue.requeue(job.id))
            raise
        except Exception as e:
            logger.exception(
                "Job %s (%s) attempt %d failed", job.id, job.name, job.attempts_made
            )
            await self.queue.fail(job.id, f"{type(e).__name__}: {e}")
            return
        finally:
            heartbeat.cancel()
        await self.queue.complete(job.id, result)
        logger.debug("Job %s (%s) completed", job.id, job.name)

    async def _keep_lock(self, job: JobResult) -> None:
        interval = self.queue.lock_duration_seconds / 2
        while True:
            await asyncio.sleep(interval)
            try:
                renewed = await self.queue.extend_lock(job.id)
            except Exception:
                logger.exception("Renewing lock for job %s failed", job.id)
                continue
            if not renewed:
                logger.warning("Job %s (%s) lost its lock", job.id, job.name)
                return
