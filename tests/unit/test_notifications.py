"""Notification producer, deferred notifier and the send-notification job handler."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from auditflow.application.dtos.workflow import StepAssignmentResult, WorkflowInstanceResult
from auditflow.domain.exceptions import ValidationException
from auditflow.infrastructure.jobs.notifications import (
    SEND_NOTIFICATION_JOB,
    NotificationJobHandler,
)
from auditflow.infrastructure.messaging.redis_pubsub import user_channel
from auditflow.infrastructure.persistence.repositories import NotificationRepository
from auditflow.infrastructure.queue import JobQueue, JobWorker
from auditflow.infrastructure.services import DeferredAssignmentNotifier, NotificationService
from auditflow.shared.enums import JobState


@pytest.fixture
def queue(session_factory, clock) -> JobQueue:
    return JobQueue(session_factory, "notifications", clock=clock)


@pytest.fixture
def service(queue, clock) -> NotificationService:
    return NotificationService(queue, clock=clock)


def _assignment(clock, user_id: str | None = "u1") -> StepAssignmentResult:
    return StepAssignmentResult(
        id="a1",
        workflow_instance_id="i1",
        step_id="review",
        visit_id="v1",
        assignment_type="role",
        assigned_role="REVIEWER",
        assigned_user_id=user_id,
        status="pending",
        deadline=clock() + timedelta(hours=24),
        created_at=clock(),
    )


def _instance(clock, started_by: str | None = None) -> WorkflowInstanceResult:
    return WorkflowInstanceResult(
        id="i1",
        definition_id="d1",
        entity_type="engagement",
        entity_id="E-1",
        current_node_id="review",
        status="active",
        metadata={},
        started_by=started_by,
        created_at=clock(),
        completed_at=None,
    )


class TestNotificationService:
    async def test_send_queues_validated_payload(self, service, queue) -> None:
        job = await service.send_notification("u1", "Hello", "Body", type="warning", priority=5)
        assert job.name == SEND_NOTIFICATION_JOB
        assert job.priority == 5
        assert job.payload == {
            "user_id": "u1",
            "title": "Hello",
            "message": "Body",
            "type": "warning",
            "link": None,
            "metadata": {},
        }

    @pytest.mark.parametrize(
        ("user_id", "title", "kind", "field"),
        [("", "t", "info", "user_id"), ("u1", "", "info", "title"), ("u1", "t", "shout", "type")],
    )
    async def test_invalid_input_rejected(self, service, user_id, title, kind, field) -> None:
        with pytest.raises(ValidationException) as exc_info:
            await service.send_notification(user_id, title, "m", type=kind)
        assert exc_info.value.details["field"] == field

    async def test_bulk_deduplicates_users(self, service, queue) -> None:
        jobs = await service.send_bulk_notifications(["u1", "u2", "u1"], "Hi", "All")
        assert [j.payload["user_id"] for j in jobs] == ["u1", "u2"]
        assert (await queue.get_queue_status()).waiting == 2

    async def test_schedule_and_cancel(self, service, queue, clock) -> None:
        job = await service.schedule_notification(
            "u1", "Later", "Reminder", clock() + timedelta(hours=2)
        )
        assert job.state == JobState.DELAYED.value
        assert job.scheduled_at == clock() + timedelta(hours=2)
        assert await service.cancel_scheduled_notification(job.id)
        assert not await service.cancel_scheduled_notification(job.id)

    async def test_schedule_in_the_past_rejected(self, service, clock) -> None:
        with pytest.raises(ValidationException, match="future"):
            await service.schedule_notification("u1", "t", "m", clock() - timedelta(minutes=1))

    async def test_assignment_created_builds_task_notification(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        await service.assignment_created(_assignment(clock), _instance(clock))
        args, kwargs = service.send_notification.await_args
        assert args[0] == "u1"
        assert "engagement E-1" in args[2]
        assert "Due 2026-01-06 09:00 UTC." in args[2]
        assert kwargs["type"].value == "task"
        assert kwargs["link"] == "/workflows/instances/i1"
        assert kwargs["metadata"]["assignment_id"] == "a1"

    async def test_unassigned_step_sends_nothing(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        await service.assignment_created(_assignment(clock, user_id=None), _instance(clock))
        service.send_notification.assert_not_awaited()

    async def test_escalation_goes_to_new_assignee(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        await service.assignment_escalated(_assignment(clock, "boss"), _instance(clock))
        args, kwargs = service.send_notification.await_args
        assert args[:2] == ("boss", "Workflow Task Escalated to You")
        assert kwargs["priority"] == 1

    async def test_approval_and_rejection_go_to_starter(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        instance = _instance(clock, started_by="starter")
        await service.assignment_approved(_assignment(clock), instance, "u1")
        await service.assignment_rejected(_assignment(clock), instance, "u1", "wrong year")
        approved, rejected = service.send_notification.await_args_list
        assert approved.args[:2] == ("starter", "Workflow Task Approved")
        assert approved.kwargs["metadata"]["actor_id"] == "u1"
        assert rejected.args[:2] == ("starter", "Workflow Task Rejected")
        assert rejected.args[2].endswith("Reason: wrong year")
        assert rejected.kwargs["type"].value == "error"

    async def test_starter_acting_on_own_instance_is_not_told(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        await service.assignment_approved(_assignment(clock), _instance(clock), "u1")
        await service.assignment_rejected(
            _assignment(clock), _instance(clock, started_by="u1"), "u1", None
        )
        service.send_notification.assert_not_awaited()

    async def test_deadline_approaching_names_the_deadline(self, service, clock) -> None:
        service.send_notification = AsyncMock()
        await service.deadline_approaching(_assignment(clock), _instance(clock))
        args, kwargs = service.send_notification.await_args
        assert args[:2] == ("u1", "Deadline Approaching")
        assert "2026-01-06 09:00 UTC" in args[2]
        assert kwargs["type"].value == "warning"


class TestDeferredAssignmentNotifier:
    async def test_flush_hands_over_and_empties(self, clock) -> None:
        deferred = DeferredAssignmentNotifier()
        await deferred.assignment_created(_assignment(clock), _instance(clock))
        await deferred.assignment_created(_assignment(clock, "u2"), _instance(clock))
        assert len(deferred) == 2

        target = AsyncMock()
        target.assignment_created.side_effect = [RuntimeError("queue down"), None]
        assert await deferred.flush(target) == 1
        assert len(deferred) == 0

    async def test_flush_replays_each_event_kind(self, clock) -> None:
        deferred = DeferredAssignmentNotifier()
        assignment, instance = _assignment(clock), _instance(clock, started_by="s1")
        await deferred.assignment_escalated(assignment, instance)
        await deferred.assignment_approved(assignment, instance, "u1")
        await deferred.assignment_rejected(assignment, instance, "u1", "no")
        await deferred.deadline_approaching(assignment, instance)

        target = AsyncMock()
        assert await deferred.flush(target) == 4
        target.assignment_escalated.assert_awaited_once_with(assignment, instance)
        target.assignment_approved.assert_awaited_once_with(assignment, instance, "u1")
        target.assignment_rejected.assert_awaited_once_with(assignment, instance, "u1", "no")
        target.deadline_approaching.assert_awaited_once_with(assignment, instance)
        target.assignment_created.assert_not_awaited()

    async def test_discard(self, clock) -> None:
        deferred = DeferredAssignmentNotifier()
        await deferred.assignment_created(_assignment(clock), _instance(clock))
        deferred.discard()
        assert len(deferred) == 0


class TestNotificationJobHandler:
    async def test_persists_then_pushes(self, service, queue, session_factory, channel) -> None:
        job = await service.send_notification("u1", "Hello", "Body", link="/x")
        worker = JobWorker(queue, {SEND_NOTIFICATION_JOB: NotificationJobHandler(session_factory, channel)})
        await worker.run_until_idle()

        done = await queue.get_job(job.id)
        assert done.state == JobState.COMPLETED.value
        assert done.result["pushed"] is True

        [(channel_name, message)] = channel.sent
        assert channel_name == user_channel("u1")
        assert message["event"] == "notification"
        assert message["data"]["id"] == done.result["notification_id"]

        async with session_factory() as session:
            stored = await NotificationRepository(session).list_for_user("u1")
        assert [n.title for n in stored] == ["Hello"]
        assert stored[0].metadata["job_id"] == job.id
        assert not stored[0].is_read

    async def test_undelivered_push_still_stores(
        self, service, queue, session_factory, channel
    ) -> None:
        offline = channel
        offline.deliver = False
        job = await service.send_notification("u1", "Hello", "Body")
        handler = NotificationJobHandler(session_factory, offline)
        claimed = await queue.claim_next()
        result = await handler(claimed)
        assert result["pushed"] is False
        assert len(offline.sent) == 1
        async with session_factory() as session:
            assert await NotificationRepository(session).count_unread("u1") == 1
        assert job.id == claimed.id

    async def test_channel_error_is_not_fatal(self, service, queue, session_factory) -> None:
        broken = AsyncMock()
        broken.send.side_effect = ConnectionError("redis gone")
        await service.send_notification("u1", "Hello", "Body")
        result = await NotificationJobHandler(session_factory, broken)(await queue.claim_next())
        assert result["pushed"] is False


class TestNotificationRepository:
    async def test_read_state(self, session_factory) -> None:
        async with session_factory() as session:
            async with session.begin():
                repo = NotificationRepository(session)
                first = await repo.create_notification("u1", "a", "m")
                await repo.create_notification("u1", "b", "m", type="task")
                await repo.create_notification("u2", "c", "m")

        async with session_factory() as session:
            async with session.begin():
                repo = NotificationRepository(session)
                assert await repo.mark_read(first.id, "u2") is None
                assert (await repo.mark_read(first.id, "u1")).is_read
                assert await repo.count_unread("u1") == 1
                assert await repo.mark_all_read("u1") == 1
                assert len(await repo.list_for_user("u1", unread_only=True)) == 0
                assert await repo.count_unread("u2") == 1
