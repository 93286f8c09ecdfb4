"""Process-level owner of queues and workers, with ordered shutdown."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from auditflow.infrastructure.persistence.database import dispose_engine
from auditflow.infrastructure.queue.job_queue import JobQueue
from auditflow.infrastructure.queue.worker import JobWorker

logger = logging.getLogger(__name__)


class QueueHost:
    """Holds every (queue, worker) pair of a process.

    shutdown() runs once, in this order for each pair: stop accepting jobs,
    drain in-flight jobs (bounded by the worker's timeout), close the queue.
    The database engine is disposed last.
    """

    def __init__(
        self,
        pairs: list[tuple[JobQueue, JobWorker | None]],
        *,
        dispose: Callable[[], Awaitable[None]] | None = dispose_engine,
    ) -> None:
        self.pairs = list(pairs)
        self._dispose = dispose
        self._shut_down = False

    @property
    def queues(self) -> dict[str, JobQueue]:
        return {queue.queue_name: queue for queue, _ in self.pairs}

    def start(self) -> None:
        for _, worker in self.pairs:
            if worker is not None:
                worker.start()

    async def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down %d queue(s)", len(self.pairs))
        for _, worker in self.pairs:
            if worker is not None:
                worker.stop_accepting()
        for queue, worker in self.pairs:
            if worker is not None:
                try:
                    await worker.close()
                except Exception:
                    logger.exception("Worker for %s did not close cleanly", queue.queue_name)
            await queue.close()
        if self._dispose is not None:
            await self._dispose()
        logger.info("Queue shutdown complete")
