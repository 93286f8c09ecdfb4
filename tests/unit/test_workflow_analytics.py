"""Analytics aggregation and the overdue sweep over mocked repositories."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from auditflow.application.dtos.analytics import ActivityPoint, EntityTypePerformance
from auditflow.application.dtos.workflow import (
    EscalationOutcome,
    StepAssignmentResult,
    TimelineEventResult,
    UserWorkload,
    WorkflowInstanceResult,
)
from auditflow.application.use_cases.process_overdue import ProcessOverdueAssignmentsUseCase
from auditflow.application.use_cases.workflow_analytics import GetWorkflowAnalyticsUseCase

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _instance(n: int, entity_type: str, status: str, hours: float | None = None):
    created = NOW - timedelta(days=2)
    return WorkflowInstanceResult(
        id=f"i{n}",
        definition_id="d1",
        entity_type=entity_type,
        entity_id=f"E-{n}",
        current_node_id=None,
        status=status,
        metadata={},
        started_by=None,
        created_at=created,
        completed_at=created + timedelta(hours=hours) if hours is not None else None,
    )


def _assignment(
    n: int,
    step_id: str,
    status: str,
    user_id: str | None = None,
    hours: float | None = None,
    deadline: datetime | None = None,
):
    created = NOW - timedelta(days=1)
    return StepAssignmentResult(
        id=f"a{n}",
        workflow_instance_id="i1",
        step_id=step_id,
        visit_id=f"v{n}",
        assignment_type="role",
        assigned_role="REVIEWER",
        assigned_user_id=user_id,
        status=status,
        deadline=deadline,
        created_at=created,
        completed_at=created + timedelta(hours=hours) if hours is not None else None,
    )


def _event(n: int, action: str, days_ago: int) -> TimelineEventResult:
    return TimelineEventResult(
        id=f"e{n}",
        workflow_instance_id="i1",
        sequence=n,
        action=action,
        actor_id=None,
        step_id=None,
        payload={},
        created_at=NOW - timedelta(days=days_ago),
    )


@pytest.fixture
def use_case() -> GetWorkflowAnalyticsUseCase:
    instances = AsyncMock()
    instances.list_all = AsyncMock(
        return_value=[
            _instance(1, "engagement", "completed", hours=10),
            _instance(2, "engagement", "completed", hours=20),
            _instance(3, "engagement", "cancelled"),
            _instance(4, "report", "active"),
        ]
    )
    assignments = AsyncMock()
    assignments.list_all = AsyncMock(
        return_value=[
            _assignment(1, "review", "completed", "ann", hours=2),
            _assignment(2, "review", "completed", "ann", hours=4),
            _assignment(3, "signoff", "completed", "ben", hours=9),
            _assignment(4, "review", "pending", "ben", deadline=NOW - timedelta(hours=1)),
            _assignment(5, "review", "pending", "ben", deadline=NOW + timedelta(hours=1)),
            _assignment(6, "signoff", "escalated", "cat"),
        ]
    )
    timeline = AsyncMock()
    timeline.list_since = AsyncMock(
        return_value=[_event(1, "approve", 1), _event(2, "approve", 1), _event(3, "reject", 3)]
    )
    return GetWorkflowAnalyticsUseCase(instances, assignments, timeline, clock=lambda: NOW)


class TestGetWorkflowAnalytics:
    async def test_status_counts_and_averages(self, use_case) -> None:
        analytics = await use_case.get_analytics()
        assert analytics.instances_by_status == {"completed": 2, "cancelled": 1, "active": 1}
        assert analytics.assignments_by_status["pending"] == 2
        assert analytics.average_completion_hours == 15.0
        assert analytics.active_instances == 1
        assert analytics.overdue_assignments == 1
        use_case.timeline_repo.list_since.assert_awaited_once_with(NOW - timedelta(days=30))

    async def test_entity_type_performance(self, use_case) -> None:
        analytics = await use_case.get_analytics()
        assert analytics.performance_by_entity_type == [
            EntityTypePerformance("engagement", total=3, completed=2, cancelled=1, completion_rate=67),
            EntityTypePerformance("report", total=1, completed=0, cancelled=0, completion_rate=0),
        ]

    async def test_activity_grouped_by_day_and_action(self, use_case) -> None:
        analytics = await use_case.get_analytics()
        assert analytics.timeline_activity == [
            ActivityPoint(date="2026-03-07", action="reject", count=1),
            ActivityPoint(date="2026-03-09", action="approve", count=2),
        ]

    async def test_performers_bottlenecks_and_escalations(self, use_case) -> None:
        analytics = await use_case.get_analytics()
        assert [(p.user_id, p.completed, p.average_hours) for p in analytics.top_performers] == [
            ("ann", 2, 3.0),
            ("ben", 1, 9.0),
        ]
        assert [b.step_id for b in analytics.bottlenecks] == ["signoff", "review"]
        assert analytics.escalations.total_escalated == 1
        assert analytics.escalations.by_step == {"signoff": 1}

    async def test_no_completed_instances(self) -> None:
        empty = AsyncMock()
        empty.list_all = AsyncMock(return_value=[])
        empty.list_since = AsyncMock(return_value=[])
        analytics = await GetWorkflowAnalyticsUseCase(empty, empty, empty, clock=lambda: NOW).get_analytics()
        assert analytics.average_completion_hours is None
        assert analytics.top_performers == []

    async def test_user_assignment_stats(self, use_case) -> None:
        use_case.assignment_repo.get_workloads = AsyncMock(
            return_value={"ben": UserWorkload("ben", pending_count=2, overdue_count=1)}
        )
        stats = await use_case.get_user_assignment_stats("ben")
        assert (stats.pending, stats.overdue, stats.total_workload) == (2, 1, 4)


class TestProcessOverdueAssignments:
    async def test_failure_does_not_stop_sweep(self) -> None:
        runtime = AsyncMock()
        runtime.get_overdue_assignments = AsyncMock(
            return_value=[_assignment(n, "review", "pending") for n in (1, 2, 3)]
        )
        runtime.escalate = AsyncMock(
            side_effect=[
                EscalationOutcome("a1", "escalated", escalated_to_role="MANAGER"),
                RuntimeError("directory offline"),
                EscalationOutcome("a3", "skipped", error="No escalation role configured"),
            ]
        )
        runtime.send_deadline_reminders = AsyncMock(return_value=2)
        result = await ProcessOverdueAssignmentsUseCase(runtime).execute(limit=10)

        runtime.get_overdue_assignments.assert_awaited_once_with(limit=10)
        runtime.send_deadline_reminders.assert_awaited_once_with(limit=10)
        assert (result.total, result.escalated, result.failed) == (3, 1, 1)
        assert result.reminders_sent == 2
        assert result.results[1] == EscalationOutcome("a2", "failed", error="directory offline")

    async def test_nothing_overdue(self) -> None:
        runtime = AsyncMock()
        runtime.get_overdue_assignments = AsyncMock(return_value=[])
        runtime.send_deadline_reminders = AsyncMock(return_value=0)
        result = await ProcessOverdueAssignmentsUseCase(runtime).execute()
        assert (result.total, result.results, result.reminders_sent) == (0, [], 0)
        runtime.escalate.assert_not_awaited()

    async def test_reminder_failure_keeps_escalation_summary(self) -> None:
        runtime = AsyncMock()
        runtime.get_overdue_assignments = AsyncMock(
            return_value=[_assignment(1, "review", "pending")]
        )
        runtime.escalate = AsyncMock(return_value=EscalationOutcome("a1", "escalated"))
        runtime.send_deadline_reminders = AsyncMock(side_effect=RuntimeError("db gone"))
        result = await ProcessOverdueAssignmentsUseCase(runtime).execute()
        assert (result.total, result.escalated, result.reminders_sent) == (1, 1, 0)
