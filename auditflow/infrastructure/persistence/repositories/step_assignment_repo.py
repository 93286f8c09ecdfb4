"""Step assignment repository: human work items, workload and overdue queries."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.workflow import StepAssignmentResult, UserWorkload
from auditflow.domain.enums import AssignmentStatus
from auditflow.infrastructure.persistence.models.workflow import StepAssignment
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.utils.datetime import ensure_utc

_PENDING = AssignmentStatus.PENDING.value


def _to_result(a: StepAssignment) -> StepAssignmentResult:
    """Map StepAssignment ORM to StepAssignmentResult DTO."""
    return StepAssignmentResult(
        id=a.id,
        workflow_instance_id=a.workflow_instance_id,
        step_id=a.step_id,
        visit_id=a.visit_id,
        assignment_type=a.assignment_type,
        assigned_role=a.assigned_role,
        assigned_user_id=a.assigned_user_id,
        status=a.status,
        deadline=ensure_utc(a.deadline),
        created_at=ensure_utc(a.created_at),  # type: ignore[arg-type]
        completed_at=ensure_utc(a.completed_at),
        completed_by=a.completed_by,
        comment=a.comment,
        escalated_at=ensure_utc(a.escalated_at),
        escalated_to=a.escalated_to,
        reminder_sent_at=ensure_utc(a.reminder_sent_at),
    )


class StepAssignmentRepository(BaseRepository[StepAssignment]):
    """Step assignment repository. Implements IStepAssignmentRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, StepAssignment)

    async def get_by_id(
        self, assignment_id: str, *, for_update: bool = False
    ) -> StepAssignmentResult | None:
        row = await self._get_row(assignment_id, for_update=for_update)
        return _to_result(row) if row else None

    async def create_assignment(
        self,
        workflow_instance_id: str,
        step_id: str,
        visit_id: str,
        assignment_type: str,
        *,
        assigned_role: str | None,
        assigned_user_id: str | None,
        deadline: datetime | None,
    ) -> StepAssignmentResult:
        """Create a pending assignment and return the result DTO."""
        row = StepAssignment(
            workflow_instance_id=workflow_instance_id,
            step_id=step_id,
            visit_id=visit_id,
            assignment_type=assignment_type,
            assigned_role=assigned_role,
            assigned_user_id=assigned_user_id,
            status=_PENDING,
            deadline=deadline,
        )
        return _to_result(await self._add(row))

    async def close_assignment(
        self,
        assignment_id: str,
        status: str,
        *,
        completed_at: datetime,
        completed_by: str | None = None,
        comment: str | None = None,
    ) -> StepAssignmentResult:
        row = await self._require_row(assignment_id)
        row.status = status
        row.completed_at = completed_at
        row.completed_by = completed_by
        if comment is not None:
            row.comment = comment
        return _to_result(await self._save(row))

    async def mark_escalated(
        self, assignment_id: str, *, escalated_at: datetime, escalated_to: str | None
    ) -> StepAssignmentResult:
        row = await self._require_row(assignment_id)
        row.status = AssignmentStatus.ESCALATED.value
        row.escalated_at = escalated_at
        row.escalated_to = escalated_to
        row.completed_at = escalated_at
        return _to_result(await self._save(row))

    async def close_pending_for_instance(
        self,
        workflow_instance_id: str,
        status: str,
        *,
        completed_at: datetime,
        visit_id: str | None = None,
        exclude_id: str | None = None,
    ) -> int:
        """Bulk-close pending rows; returns how many were closed."""
        stmt = update(StepAssignment).where(
            StepAssignment.workflow_instance_id == workflow_instance_id,
            StepAssignment.status == _PENDING,
        )
        if visit_id is not None:
            stmt = stmt.where(StepAssignment.visit_id == visit_id)
        if exclude_id is not None:
            stmt = stmt.where(StepAssignment.id != exclude_id)
        result = await self.db.execute(
            stmt.values(status=status, completed_at=completed_at)
        )
        return result.rowcount or 0

    async def list_for_visit(
        self, workflow_instance_id: str, visit_id: str
    ) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment)
            .where(
                StepAssignment.workflow_instance_id == workflow_instance_id,
                StepAssignment.visit_id == visit_id,
            )
            .order_by(StepAssignment.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def list_for_instance(
        self, workflow_instance_id: str
    ) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment)
            .where(StepAssignment.workflow_instance_id == workflow_instance_id)
            .order_by(StepAssignment.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def list_pending(self) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment)
            .where(StepAssignment.status == _PENDING)
            .order_by(StepAssignment.created_at.asc())
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def list_all(self) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment).order_by(StepAssignment.created_at.asc())
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def get_overdue(
        self, now: datetime, limit: int = 100
    ) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment)
            .where(
                StepAssignment.status == _PENDING,
                StepAssignment.deadline.is_not(None),
                StepAssignment.deadline < now,
            )
            .order_by(StepAssignment.deadline.asc())
            .limit(limit)
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def get_due_soon(
        self, now: datetime, until: datetime, limit: int = 100
    ) -> list[StepAssignmentResult]:
        """Pending, assigned rows whose deadline falls in [now, until]."""
        result = await self.db.execute(
            select(StepAssignment)
            .where(
                StepAssignment.status == _PENDING,
                StepAssignment.assigned_user_id.is_not(None),
                StepAssignment.deadline >= now,
                StepAssignment.deadline <= until,
            )
            .order_by(StepAssignment.deadline.asc())
            .limit(limit)
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def claim_reminder(
        self, assignment_id: str, *, sent_at: datetime, not_since: datetime
    ) -> bool:
        """Stamp reminder_sent_at unless a reminder went out after not_since."""
        result = await self.db.execute(
            update(StepAssignment)
            .where(
                StepAssignment.id == assignment_id,
                StepAssignment.status == _PENDING,
                or_(
                    StepAssignment.reminder_sent_at.is_(None),
                    StepAssignment.reminder_sent_at <= not_since,
                ),
            )
            .values(reminder_sent_at=sent_at)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    async def get_unassigned(self, limit: int = 100) -> list[StepAssignmentResult]:
        result = await self.db.execute(
            select(StepAssignment)
            .where(
                StepAssignment.status == _PENDING,
                StepAssignment.assigned_user_id.is_(None),
            )
            .order_by(StepAssignment.created_at.asc())
            .limit(limit)
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def get_for_user(
        self, user_id: str, roles: list[str], include_completed: bool = False
    ) -> list[StepAssignmentResult]:
        """Direct assignments plus unassigned role work the user could pick up."""
        lowered = [r.lower() for r in roles]
        conditions = [StepAssignment.assigned_user_id == user_id]
        if lowered:
            conditions.append(
                (StepAssignment.assigned_user_id.is_(None))
                & (func.lower(StepAssignment.assigned_role).in_(lowered))
            )
        q = select(StepAssignment).where(or_(*conditions))
        if not include_completed:
            q = q.where(StepAssignment.status == _PENDING)
        q = q.order_by(
            StepAssignment.deadline.is_(None), StepAssignment.deadline.asc()
        )
        result = await self.db.execute(q)
        return [_to_result(row) for row in result.scalars().all()]

    async def get_workloads(
        self, user_ids: list[str], now: datetime
    ) -> dict[str, UserWorkload]:
        """Pending and overdue counts per user in one grouped query."""
        workloads = {uid: UserWorkload(user_id=uid) for uid in user_ids}
        if not user_ids:
            return workloads
        overdue = case(
            (
                (StepAssignment.deadline.is_not(None)) & (StepAssignment.deadline < now),
                1,
            ),
            else_=0,
        )
        result = await self.db.execute(
            select(
                StepAssignment.assigned_user_id,
                func.count(StepAssignment.id),
                func.sum(overdue),
            )
            .where(
                StepAssignment.status == _PENDING,
                StepAssignment.assigned_user_id.in_(user_ids),
            )
            .group_by(StepAssignment.assigned_user_id)
        )
        for user_id, pending, overdue_count in result.all():
            workloads[user_id] = UserWorkload(
                user_id=user_id,
                pending_count=int(pending or 0),
                overdue_count=int(overdue_count or 0),
            )
        return workloads
