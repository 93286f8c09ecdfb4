"""Workflow definition repository (versioned graphs)."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.dtos.workflow import WorkflowDefinitionResult
from auditflow.domain.entities.workflow_graph import WorkflowGraph
from auditflow.infrastructure.persistence.models.workflow import (
    WorkflowDefinition,
    WorkflowInstance,
)
from auditflow.infrastructure.persistence.repositories.base import BaseRepository
from auditflow.shared.utils.datetime import ensure_utc


def _to_result(d: WorkflowDefinition) -> WorkflowDefinitionResult:
    """Map WorkflowDefinition ORM to WorkflowDefinitionResult DTO."""
    return WorkflowDefinitionResult(
        id=d.id,
        name=d.name,
        description=d.description,
        entity_type=d.entity_type,
        version=d.version,
        is_active=d.is_active,
        graph=WorkflowGraph.from_dict({"nodes": d.nodes, "edges": d.edges}),
        created_at=ensure_utc(d.created_at),  # type: ignore[arg-type]
        updated_at=ensure_utc(d.updated_at),  # type: ignore[arg-type]
    )


class WorkflowDefinitionRepository(BaseRepository[WorkflowDefinition]):
    """Workflow definition repository. Implements IWorkflowDefinitionRepository."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, WorkflowDefinition)

    async def get_by_id(self, definition_id: str) -> WorkflowDefinitionResult | None:
        row = await self._get_row(definition_id)
        return _to_result(row) if row else None

    async def get_active_for_entity_type(
        self, entity_type: str
    ) -> WorkflowDefinitionResult | None:
        result = await self.db.execute(
            select(WorkflowDefinition)
            .where(
                WorkflowDefinition.entity_type == entity_type,
                WorkflowDefinition.is_active.is_(True),
            )
            .order_by(
                WorkflowDefinition.version.desc(), WorkflowDefinition.created_at.desc()
            )
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def get_latest_version(self, name: str) -> WorkflowDefinitionResult | None:
        result = await self.db.execute(
            select(WorkflowDefinition)
            .where(WorkflowDefinition.name == name)
            .order_by(WorkflowDefinition.version.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _to_result(row) if row else None

    async def list_definitions(
        self,
        entity_type: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> list[WorkflowDefinitionResult]:
        q = select(WorkflowDefinition)
        if entity_type is not None:
            q = q.where(WorkflowDefinition.entity_type == entity_type)
        if not include_inactive:
            q = q.where(WorkflowDefinition.is_active.is_(True))
        q = (
            q.order_by(WorkflowDefinition.name.asc(), WorkflowDefinition.version.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(q)
        return [_to_result(row) for row in result.scalars().all()]

    async def create_definition(
        self,
        name: str,
        entity_type: str,
        graph: WorkflowGraph,
        *,
        description: str | None = None,
        version: int = 1,
        is_active: bool = True,
    ) -> WorkflowDefinitionResult:
        """Create definition; return created entity."""
        data = graph.to_dict()
        row = WorkflowDefinition(
            name=name,
            description=description,
            entity_type=entity_type,
            version=version,
            is_active=is_active,
            nodes=data["nodes"],
            edges=data["edges"],
        )
        return _to_result(await self._add(row))

    async def deactivate_other_versions(self, name: str, keep_id: str) -> int:
        result = await self.db.execute(
            update(WorkflowDefinition)
            .where(
                WorkflowDefinition.name == name,
                WorkflowDefinition.id != keep_id,
                WorkflowDefinition.is_active.is_(True),
            )
            .values(is_active=False)
        )
        return result.rowcount or 0

    async def set_active(self, definition_id: str, is_active: bool) -> None:
        row = await self._require_row(definition_id)
        row.is_active = is_active
        await self._save(row)

    async def count_instances(self, definition_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(WorkflowInstance)
            .where(WorkflowInstance.definition_id == definition_id)
        )
        return int(result.scalar_one())

    async def replace_graph(
        self,
        definition_id: str,
        graph: WorkflowGraph,
        *,
        description: str | None = None,
    ) -> WorkflowDefinitionResult:
        """Overwrite the graph of a definition no instance references yet."""
        row = await self._require_row(definition_id)
        data = graph.to_dict()
        row.nodes = data["nodes"]
        row.edges = data["edges"]
        if description is not None:
            row.description = description
        return _to_result(await self._save(row))
