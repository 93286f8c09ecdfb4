"""Workflow definition API: validate, publish, version and browse templates."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from auditflow.api.v1.dependencies import (
    get_definition_service,
    get_definition_service_for_write,
)
from auditflow.application.services.definition_service import WorkflowDefinitionService
from auditflow.application.services.graph_validator import validate_workflow
from auditflow.application.services.template_catalog import (
    instantiate_node_template,
    instantiate_workflow_template,
    list_node_templates,
    list_workflow_templates,
)
from auditflow.core.limiter import limit_writes
from auditflow.domain.entities.workflow_graph import Position
from auditflow.domain.exceptions import StructuralValidationException
from auditflow.schemas.workflow import (
    GraphPayload,
    NodeInstantiateRequest,
    NodeTemplateResponse,
    PublishResponse,
    TemplateInstantiateResponse,
    ValidationResponse,
    WorkflowActivationRequest,
    WorkflowDefinitionResponse,
    WorkflowPublishRequest,
    WorkflowTemplateResponse,
    WorkflowUpdateRequest,
)

router = APIRouter()


def _raise_if_rejected(result) -> PublishResponse:
    if not result.published:
        raise StructuralValidationException(
            [i.to_dict() for i in result.validation.errors],
            [i.to_dict() for i in result.validation.warnings],
        )
    return PublishResponse.from_result(result)


@router.post("/validate", response_model=ValidationResponse)
async def validate_graph(body: GraphPayload):
    """Validate a candidate graph without saving it."""
    return ValidationResponse.from_result(validate_workflow(body.to_graph()))


@router.post("", response_model=PublishResponse, status_code=201)
@limit_writes
async def publish_workflow(
    request: Request,
    body: WorkflowPublishRequest,
    service: Annotated[WorkflowDefinitionService, Depends(get_definition_service_for_write)],
):
    """Publish a definition; a name that already exists gets its next version."""
    result = await service.publish(
        body.name,
        body.entity_type,
        body.graph.to_graph(),
        description=body.description,
        is_active=body.is_active,
    )
    return _raise_if_rejected(result)


@router.get("", response_model=list[WorkflowDefinitionResponse])
async def list_workflows(
    service: Annotated[WorkflowDefinitionService, Depends(get_definition_service)],
    entity_type: str | None = Query(None),
    include_inactive: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    definitions = await service.list(
        entity_type=entity_type, include_inactive=include_inactive, skip=skip, limit=limit
    )
    return [WorkflowDefinitionResponse.from_result(d) for d in definitions]


@router.get("/templates/nodes", response_model=list[NodeTemplateResponse])
async def get_node_templates(category: str | None = Query(None)):
    return [NodeTemplateResponse.from_template(t) for t in list_node_templates(category)]


@router.post("/templates/nodes/{template_id}/instantiate")
async def instantiate_node(template_id: str, body: NodeInstantiateRequest):
    """Node with a fresh id, ready to drop into an editor graph."""
    node = instantiate_node_template(
        template_id, Position(body.position.x, body.position.y), body.overrides
    )
    return node.to_dict()


@router.get("/templates", response_model=list[WorkflowTemplateResponse])
async def get_workflow_templates(category: str | None = Query(None)):
    return [WorkflowTemplateResponse.from_template(t) for t in list_workflow_templates(category)]


@router.post(
    "/templates/{template_id}/instantiate", response_model=TemplateInstantiateResponse
)
async def instantiate_template(template_id: str):
    """Fresh graph from a starter template; every node and edge gets a new id."""
    graph = instantiate_workflow_template(template_id)
    return TemplateInstantiateResponse(
        graph=graph.to_dict(),
        validation=ValidationResponse.from_result(validate_workflow(graph)),
    )


@router.get("/{definition_id}", response_model=WorkflowDefinitionResponse)
async def get_workflow(
    definition_id: str,
    service: Annotated[WorkflowDefinitionService, Depends(get_definition_service)],
):
    return WorkflowDefinitionResponse.from_result(await service.get(definition_id))


@router.put("/{definition_id}", response_model=PublishResponse)
@limit_writes
async def update_workflow(
    request: Request,
    definition_id: str,
    body: WorkflowUpdateRequest,
    service: Annotated[WorkflowDefinitionService, Depends(get_definition_service_for_write)],
):
    """Edit in place while unused; a definition with instances gets a new version."""
    result = await service.update(
        definition_id, body.graph.to_graph(), description=body.description
    )
    return _raise_if_rejected(result)


@router.post("/{definition_id}/activate", response_model=WorkflowDefinitionResponse)
@limit_writes
async def set_workflow_active(
    request: Request,
    definition_id: str,
    body: WorkflowActivationRequest,
    service: Annotated[WorkflowDefinitionService, Depends(get_definition_service_for_write)],
):
    """Activate (deactivating other versions of the same name) or deactivate."""
    return WorkflowDefinitionResponse.from_result(
        await service.set_active(definition_id, body.is_active)
    )
