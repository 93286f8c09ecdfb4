"""Durable background job queue: JobQueue, JobWorker, QueueHost."""

from auditflow.infrastructure.queue.backoff import compute_backoff
from auditflow.infrastructure.queue.host import QueueHost
from auditflow.infrastructure.queue.job_queue import JobQueue
from auditflow.infrastructure.queue.worker import JobHandler, JobWorker

__all__ = ["JobHandler", "JobQueue", "JobWorker", "QueueHost", "compute_backoff"]
