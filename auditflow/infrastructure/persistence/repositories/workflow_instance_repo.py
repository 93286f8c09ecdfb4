"""Workflow instance repository."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.workflow import WorkflowInstanceResult
from auditflow.infrastructure.persistence.models.workflow import WorkflowInstance
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.utils.datetime import ensure_utc


def _to_result(i: WorkflowInstance) -> WorkflowInstanceResult:
    """Map WorkflowInstance ORM to WorkflowInstanceResult DTO."""
    return WorkflowInstanceResult(
        id=i.id,
        definition_id=i.definition_id,
        entity_type=i.entity_type,
        entity_id=i.entity_id,
        current_node_id=i.current_node_id,
        status=i.status,
        metadata=dict(i.metadata_ or {}),
        started_by=i.started_by,
        created_at=ensure_utc(i.created_at),  # type: ignore[arg-type]
        completed_at=ensure_utc(i.completed_at),
    )


class WorkflowInstanceRepository(BaseRepository[WorkflowInstance]):
    """Workflow instance repository. Implements IWorkflowInstanceRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowInstance)

    async def get_by_id(
        self, instance_id: str, *, for_update: bool = False
    ) -> WorkflowInstanceResult | None:
        row = await self._get_row(instance_id, for_update=for_update)
        return _to_result(row) if row else None

    async def get_for_entity(
        self, definition_id: str, entity_type: str, entity_id: str
    ) -> WorkflowInstanceResult | None:
        result = await self.db.execute(
            select(WorkflowInstance).where(
                WorkflowInstance.definition_id == definition_id,
                WorkflowInstance.entity_type == entity_type,
                WorkflowInstance.entity_id == entity_id,
            )
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def list_for_entity(
        self, entity_type: str, entity_id: str
    ) -> list[WorkflowInstanceResult]:
        result = await self.db.execute(
            select(WorkflowInstance)
            .where(
                WorkflowInstance.entity_type == entity_type,
                WorkflowInstance.entity_id == entity_id,
            )
            .order_by(WorkflowInstance.created_at.desc())
        )
        return [_to_result(row) for row in result.scalars().all()]

    async def create_instance(
        self,
        definition_id: str,
        entity_type: str,
        entity_id: str,
        current_node_id: str | None,
        metadata: dict[str, Any],
        started_by: str | None = None,
    ) -> WorkflowInstanceResult:
        """Create instance; return created entity."""
        row = WorkflowInstance(
            definition_id=definition_id,
            entity_type=entity_type,
            entity_id=entity_id,
            current_node_id=current_node_id,
            metadata_=dict(metadata),
            started_by=started_by,
        )
        return _to_result(await self._add(row))

    async def update_state(
        self,
        instance_id: str,
        *,
        current_node_id: str | None,
        status: str,
        completed_at: datetime | None = None,
    ) -> WorkflowInstanceResult:
        row = await self._require_row(instance_id)
        row.current_node_id = current_node_id
        row.status = status
        if completed_at is not None:
            row.completed_at = completed_at
        return _to_result(await self._save(row))

    async def list_all(self) -> list[WorkflowInstanceResult]:
        result = await self.db.execute(
            select(WorkflowInstance).order_by(WorkflowInstance.created_at.asc())
        )
        return [_to_result(row) for row in result.scalars().all()]
