"""Workflow analytics use case: dashboard statistics over instances and assignments."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from auditflow.application.dtos.analytics import (
    ActivityPoint,
    EntityTypePerformance,
    EscalationStats,
    PerformerStats,
    StepBottleneck,
    UserAssignmentStats,
    WorkflowAnalytics,
)
from auditflow.domain.enums import AssignmentStatus, InstanceStatus
from auditflow.shared.utils.datetime import hours_between, utc_now

if TYPE_CHECKING:
    from auditflow.application.dtos.workflow import StepAssignmentResult
    from auditflow.application.interfaces.repositories import (
        IStepAssignmentRepository,
        ITimelineRepository,
        IWorkflowInstanceRepository,
    )

ACTIVITY_WINDOW_DAYS = 30
TOP_PERFORMERS_LIMIT = 10
BOTTLENECK_LIMIT = 10


def _round1(value: float) -> float:
    return round(value, 1)


class GetWorkflowAnalyticsUseCase:
    """Aggregate instance, assignment and timeline rows into dashboard figures.

    Aggregation happens in Python over repository DTOs so the same code runs
    on PostgreSQL and SQLite.
    """

    def __init__(
        self,
        instance_repo: IWorkflowInstanceRepository,
        assignment_repo: IStepAssignmentRepository,
        timeline_repo: ITimelineRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.instance_repo = instance_repo
        self.assignment_repo = assignment_repo
        self.timeline_repo = timeline_repo
        self.clock = clock

    async def get_analytics(self) -> WorkflowAnalytics:
        now = self.clock()
        instances = await self.instance_repo.list_all()
        assignments = await self.assignment_repo.list_all()
        events = await self.timeline_repo.list_since(
            now - timedelta(days=ACTIVITY_WINDOW_DAYS)
        )

        completion_hours = [
            hours_between(i.created_at, i.completed_at)
            for i in instances
            if i.status == InstanceStatus.COMPLETED.value and i.completed_at is not None
        ]
        average = (
            _round1(sum(completion_hours) / len(completion_hours))
            if completion_hours
            else None
        )
        overdue = sum(
            1
            for a in assignments
            if a.status == AssignmentStatus.PENDING.value
            and a.deadline is not None
            and a.deadline < now
        )

        activity = Counter((e.created_at.date().isoformat(), e.action) for e in events)
        return WorkflowAnalytics(
            instances_by_status=dict(Counter(i.status for i in instances)),
            assignments_by_status=dict(Counter(a.status for a in assignments)),
            average_completion_hours=average,
            active_instances=sum(
                1 for i in instances if i.status == InstanceStatus.ACTIVE.value
            ),
            overdue_assignments=overdue,
            performance_by_entity_type=self._performance_by_entity_type(instances),
            timeline_activity=[
                ActivityPoint(date=date, action=action, count=count)
                for (date, action), count in sorted(activity.items())
            ],
            top_performers=self._top_performers(assignments),
            bottlenecks=self._bottlenecks(assignments),
            escalations=self._escalations(assignments),
        )

    async def get_user_assignment_stats(self, user_id: str) -> UserAssignmentStats:
        workloads = await self.assignment_repo.get_workloads([user_id], self.clock())
        load = workloads[user_id]
        return UserAssignmentStats(
            user_id=user_id,
            pending=load.pending_count,
            overdue=load.overdue_count,
            total_workload=load.total_workload,
        )

    @staticmethod
    def _performance_by_entity_type(instances: list) -> list[EntityTypePerformance]:
        by_type: dict[str, Counter[str]] = defaultdict(Counter)
        for i in instances:
            by_type[i.entity_type][i.status] += 1
        result = []
        for entity_type in sorted(by_type):
            counts = by_type[entity_type]
            total = sum(counts.values())
            completed = counts[InstanceStatus.COMPLETED.value]
            result.append(
                EntityTypePerformance(
                    entity_type=entity_type,
                    total=total,
                    completed=completed,
                    cancelled=counts[InstanceStatus.CANCELLED.value],
                    completion_rate=round(completed / total * 100) if total else 0,
                )
            )
        return result

    @staticmethod
    def _top_performers(assignments: list[StepAssignmentResult]) -> list[PerformerStats]:
        hours: dict[str, list[float]] = defaultdict(list)
        for a in assignments:
            if (
                a.status == AssignmentStatus.COMPLETED.value
                and a.assigned_user_id is not None
                and a.completed_at is not None
            ):
                hours[a.assigned_user_id].append(hours_between(a.created_at, a.completed_at))
        ranked = sorted(hours.items(), key=lambda item: (-len(item[1]), item[0]))
        return [
            PerformerStats(
                user_id=user_id,
                completed=len(values),
                average_hours=_round1(sum(values) / len(values)),
            )
            for user_id, values in ranked[:TOP_PERFORMERS_LIMIT]
        ]

    @staticmethod
    def _bottlenecks(assignments: list[StepAssignmentResult]) -> list[StepBottleneck]:
        durations: dict[str, list[float]] = defaultdict(list)
        for a in assignments:
            if a.status == AssignmentStatus.COMPLETED.value and a.completed_at is not None:
                durations[a.step_id].append(hours_between(a.created_at, a.completed_at))
        ranked = sorted(
            (
                StepBottleneck(
                    step_id=step_id,
                    average_hours=_round1(sum(values) / len(values)),
                    count=len(values),
                )
                for step_id, values in durations.items()
            ),
            key=lambda b: (-b.average_hours, b.step_id),
        )
        return ranked[:BOTTLENECK_LIMIT]

    @staticmethod
    def _escalations(assignments: list[StepAssignmentResult]) -> EscalationStats:
        by_step = Counter(
            a.step_id for a in assignments if a.status == AssignmentStatus.ESCALATED.value
        )
        return EscalationStats(total_escalated=sum(by_step.values()), by_step=dict(by_step))
