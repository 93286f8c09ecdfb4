"""Append-only workflow timeline repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.workflow import TimelineEventResult
from auditflow.infrastructure.persistence.models.workflow import WorkflowTimelineEvent
from auditflow.shared.utils.datetime import ensure_utc


def _to_result(e: WorkflowTimelineEvent) -> TimelineEventResult:
    """Map WorkflowTimelineEvent ORM to TimelineEventResult DTO."""
    return TimelineEventResult(
        id=e.id,
        workflow_instance_id=e.workflow_instance_id,
        sequence=e.sequence,
        action=e.action,
        actor_id=e.actor_id,
        step_id=e.step_id,
        payload=dict(e.payload or {}),
        created_at=ensure_utc(e.created_at),  # type: ignore[arg-type]
    )


class TimelineRepository:
    """Timeline repository. Implements ITimelineRepository.

    Only inserts and reads: there is deliberately no update or delete.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _next_sequence(self, workflow_instance_id: str) -> int:
        result = await self.db.execute(
            select(func.max(WorkflowTimelineEvent.sequence)).where(
                WorkflowTimelineEvent.workflow_instance_id == workflow_instance_id
            )
        )
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def append(
        self,
        workflow_instance_id: str,
        action: str,
        *,
        actor_id: str | None = None,
        step_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> TimelineEventResult:
        """Append the next event; the unique (instance, sequence) pair rejects racing writers."""
        event = WorkflowTimelineEvent(
            workflow_instance_id=workflow_instance_id,
            sequence=await self._next_sequence(workflow_instance_id),
            action=action,
            actor_id=actor_id,
            step_id=step_id,
            payload=dict(payload or {}),
        )
        self.db.add(event)
        await self.db.flush()
        await self.db.refresh(event)
        return _to_result(event)

    async def list_for_instance(
        self, workflow_instance_id: str
    ) -> list[TimelineEventResult]:
        result = await self.db.execute(
            select(WorkflowTimelineEvent)
            .where(WorkflowTimelineEvent.workflow_instance_id == workflow_instance_id)
            .order_by(WorkflowTimelineEvent.sequence.asc())
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def list_since(self, since: datetime) -> list[TimelineEventResult]:
        result = await self.db.execute(
            select(WorkflowTimelineEvent)
            .where(WorkflowTimelineEvent.created_at >= since)
            .order_by(WorkflowTimelineEvent.created_at.asc())
        )
        return [_to_result(row) for row in result.scalars().all()]
