"""Workflow definition registry: validate, publish and version graphs."""

from __future__ import annotations

import logging

from auditflow.application.dtos.validation import ValidationResult
from auditflow.application.dtos.workflow import PublishResult, WorkflowDefinitionResult
from auditflow.application.interfaces.repositories import IWorkflowDefinitionRepository
from auditflow.application.services.graph_validator import validate_workflow
from auditflow.domain.entities.workflow_graph import WorkflowGraph
from auditflow.domain.exceptions import ResourceNotFoundException, ValidationException

logger = logging.getLogger(__name__)


class WorkflowDefinitionService:
    """Publishes validated graphs.

    A graph with validation errors is never saved. A definition that an
    instance already references is immutable: editing it publishes
    version + 1 under the same name and deactivates older versions.
    """

    def __init__(self, definitions: IWorkflowDefinitionRepository) -> None:
        self.definitions = definitions

    @staticmethod
    def validate(graph: WorkflowGraph) -> ValidationResult:
        return validate_workflow(graph)

    async def publish(
        self,
        name: str,
        entity_type: str,
        graph: WorkflowGraph,
        *,
        description: str | None = None,
        is_active: bool = True,
    ) -> PublishResult:
        """Validate and save a new definition (or the next version of name)."""
        if not name.strip():
            raise ValidationException("Workflow name is required", field="name")
        if not entity_type.strip():
            raise ValidationException("Entity type is required", field="entity_type")
        validation = validate_workflow(graph)
        if not validation.is_valid:
            logger.info(
                "Workflow %s not published: %d validation error(s)",
                name,
                len(validation.errors),
            )
            return PublishResult(definition=None, validation=validation)

        latest = await self.definitions.get_latest_version(name)
        version = latest.version + 1 if latest else 1
        definition = await self.definitions.create_definition(
            name,
            entity_type,
            graph,
            description=description,
            version=version,
            is_active=is_active,
        )
        if is_active:
            await self.definitions.deactivate_other_versions(name, definition.id)
        logger.info("Published workflow %s v%d (%s)", name, version, definition.id)
        return PublishResult(definition=definition, validation=validation)

    async def update(
        self,
        definition_id: str,
        graph: WorkflowGraph,
        *,
        description: str | None = None,
    ) -> PublishResult:
        """Edit a definition; referenced definitions get a new version instead."""
        current = await self.get(definition_id)
        validation = validate_workflow(graph)
        if not validation.is_valid:
            return PublishResult(definition=None, validation=validation)
        if await self.definitions.count_instances(definition_id) == 0:
            updated = await self.definitions.replace_graph(
                definition_id, graph, description=description
            )
            return PublishResult(definition=updated, validation=validation)
        return await self.publish(
            current.name,
            current.entity_type,
            graph,
            description=description if description is not None else current.description,
            is_active=current.is_active,
        )

    async def get(self, definition_id: str) -> WorkflowDefinitionResult:
        definition = await self.definitions.get_by_id(definition_id)
        if definition is None:
            raise ResourceNotFoundException("workflow_definition", definition_id)
        return definition

    async def list(
        self,
        entity_type: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> list[WorkflowDefinitionResult]:
        return await self.definitions.list_definitions(
            entity_type=entity_type,
            include_inactive=include_inactive,
            skip=skip,
            limit=limit,
        )

    async def set_active(self, definition_id: str, is_active: bool) -> WorkflowDefinitionResult:
        current = await self.get(definition_id)
        await self.definitions.set_active(definition_id, is_active)
        if is_active:
            await self.definitions.deactivate_other_versions(current.name, definition_id)
        return await self.get(definition_id)
