"""Notification producer: enqueues send-notification jobs."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from auditflow.application.dtos.jobs import JobOptions, JobResult
from auditflow.application.dtos.workflow import StepAssignmentResult, WorkflowInstanceResult
from auditflow.application.interfaces import IJobQueue
from auditflow.domain.exceptions import ValidationException
from auditflow.infrastructure.jobs.notifications import SEND_NOTIFICATION_JOB
from auditflow.shared.enums import NotificationType
from auditflow.shared.telemetry.logging import get_logger
from auditflow.shared.utils.datetime import ensure_utc, utc_now

logger = get_logger(__name__)


def _notification_payload(
    user_id: str,
    title: str,
    message: str,
    type: NotificationType | str,
    link: str | None,
    metadata: dict[str, Any] | None,
) -> dict[str, Any]:
    if not user_id:
        raise ValidationException("user_id is required", field="user_id")
    if not title:
        raise ValidationException("title is required", field="title")
    try:
        kind = NotificationType(type)
    except ValueError as e:
        raise ValidationException(f"Unknown notification type: {type}", field="type") from e
    return {
        "user_id": user_id,
        "title": title,
        "message": message,
        "type": kind.value,
        "link": link,
        "metadata": dict(metadata or {}),
    }


def _instance_link(instance: WorkflowInstanceResult) -> str:
    return f"/workflows/instances/{instance.id}"


def _assignment_metadata(
    assignment: StepAssignmentResult, instance: WorkflowInstanceResult
) -> dict[str, Any]:
    return {
        "assignment_id": assignment.id,
        "instance_id": instance.id,
        "step_id": assignment.step_id,
    }


class NotificationService:
    """Queues notifications for delivery. Implements IAssignmentNotifier.

    Assignees hear about new, escalated and nearly due work; the user who
    started an instance hears when one of its steps is approved or rejected
    by someone else.

    Delivery happens in the notification job handler; this service only
    validates and enqueues, so callers never wait on Redis or the database
    write of the notification itself.
    """

    def __init__(
        self, queue: IJobQueue, *, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self.queue = queue
        self.clock = clock

    async def send_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        *,
        type: NotificationType | str = NotificationType.INFO,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
        priority: int = 0,
    ) -> JobResult:
        payload = _notification_payload(user_id, title, message, type, link, metadata)
        job = await self.queue.enqueue(
            SEND_NOTIFICATION_JOB, payload, JobOptions(priority=priority)
        )
        logger.debug("Queued notification job %s for %s", job.id, user_id)
        return job

    async def send_bulk_notifications(
        self,
        user_ids: list[str],
        title: str,
        message: str,
        *,
        type: NotificationType | str = NotificationType.INFO,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> list[JobResult]:
        """One job per distinct user, in the order given."""
        jobs = []
        for user_id in dict.fromkeys(user_ids):
            jobs.append(
                await self.send_notification(
                    user_id, title, message, type=type, link=link, metadata=metadata
                )
            )
        logger.info("Queued %d bulk notification(s)", len(jobs))
        return jobs

    async def schedule_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        send_at: datetime,
        *,
        type: NotificationType | str = NotificationType.INFO,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> JobResult:
        """Queue a notification that becomes due at send_at.

        Raises:
            ValidationException: send_at is not in the future.
        """
        delay = (ensure_utc(send_at) - self.clock()).total_seconds()  # type: ignore[operator]
        if delay <= 0:
            raise ValidationException("Scheduled time must be in the future", field="send_at")
        payload = _notification_payload(user_id, title, message, type, link, metadata)
        job = await self.queue.enqueue(
            SEND_NOTIFICATION_JOB, payload, JobOptions(delay_seconds=delay)
        )
        logger.info("Scheduled notification job %s for %s in %.0fs", job.id, user_id, delay)
        return job

    async def cancel_scheduled_notification(self, job_id: str) -> bool:
        """Cancel a notification that has not been picked up yet."""
        removed = await self.queue.remove(job_id)
        if not removed:
            logger.info("Notification job %s not cancelled (missing or already running)", job_id)
        return removed

    async def assignment_created(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        if assignment.assigned_user_id is None:
            return
        due = (
            f" Due {assignment.deadline.strftime('%Y-%m-%d %H:%M')} UTC."
            if assignment.deadline
            else ""
        )
        await self.send_notification(
            assignment.assigned_user_id,
            "New task assigned",
            f"You have a new task on {instance.entity_type} {instance.entity_id}.{due}",
            type=NotificationType.TASK,
            link=_instance_link(instance),
            metadata=_assignment_metadata(assignment, instance),
        )

    async def assignment_escalated(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        if assignment.assigned_user_id is None:
            return
        await self.send_notification(
            assignment.assigned_user_id,
            "Workflow Task Escalated to You",
            f"An overdue task on {instance.entity_type} {instance.entity_id} "
            "has been escalated to you.",
            type=NotificationType.WARNING,
            link=_instance_link(instance),
            metadata=_assignment_metadata(assignment, instance),
            priority=1,
        )

    async def assignment_approved(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
    ) -> None:
        starter = instance.started_by
        if starter is None or starter == actor_id:
            return
        await self.send_notification(
            starter,
            "Workflow Task Approved",
            f"Step {assignment.step_id} on {instance.entity_type} "
            f"{instance.entity_id} was approved.",
            type=NotificationType.SUCCESS,
            link=_instance_link(instance),
            metadata={**_assignment_metadata(assignment, instance), "actor_id": actor_id},
        )

    async def assignment_rejected(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
        comment: str | None,
    ) -> None:
        starter = instance.started_by
        if starter is None or starter == actor_id:
            return
        reason = f" Reason: {comment}" if comment else ""
        await self.send_notification(
            starter,
            "Workflow Task Rejected",
            f"Step {assignment.step_id} on {instance.entity_type} "
            f"{instance.entity_id} was rejected.{reason}",
            type=NotificationType.ERROR,
            link=_instance_link(instance),
            metadata={**_assignment_metadata(assignment, instance), "actor_id": actor_id},
            priority=1,
        )

    async def deadline_approaching(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        if assignment.assigned_user_id is None or assignment.deadline is None:
            return
        await self.send_notification(
            assignment.assigned_user_id,
            "Deadline Approaching",
            f"Your task on {instance.entity_type} {instance.entity_id} is due "
            f"{assignment.deadline.strftime('%Y-%m-%d %H:%M')} UTC.",
            type=NotificationType.WARNING,
            link=_instance_link(instance),
            metadata=_assignment_metadata(assignment, instance),
        )


class DeferredAssignmentNotifier:
    """IAssignmentNotifier that buffers until the transition's transaction commits.

    Enqueueing writes through the queue's own session; flushing after commit
    means a rolled-back transition never notifies anyone.
    """

    def __init__(self) -> None:
        self._pending: list[tuple[str, tuple[Any, ...]]] = []

    def __len__(self) -> int:
        return len(self._pending)

    async def assignment_created(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        self._pending.append(("assignment_created", (assignment, instance)))

    async def assignment_escalated(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        self._pending.append(("assignment_escalated", (assignment, instance)))

    async def assignment_approved(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
    ) -> None:
        self._pending.append(("assignment_approved", (assignment, instance, actor_id)))

    async def assignment_rejected(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
        comment: str | None,
    ) -> None:
        self._pending.append(
            ("assignment_rejected", (assignment, instance, actor_id, comment))
        )

    async def deadline_approaching(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        self._pending.append(("deadline_approaching", (assignment, instance)))

    def discard(self) -> None:
        self._pending.clear()

    async def flush(self, target: NotificationService) -> int:
        """Replay every buffered event on target; failures are logged per item."""
        pending, self._pending = self._pending, []
        sent = 0
        for event, args in pending:
            try:
                await getattr(target, event)(*args)
                sent += 1
            except Exception:
                logger.exception("%s notification failed for %s", event, args[0].id)
        return sent
