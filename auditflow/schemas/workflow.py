"""Workflow definition, validation and template API schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from auditflow.application.dtos.validation import ValidationResult
from auditflow.application.dtos.workflow import PublishResult, WorkflowDefinitionResult
from auditflow.application.services.template_catalog import NodeTemplate, WorkflowTemplate
from auditflow.domain.entities.workflow_graph import WorkflowGraph
from auditflow.domain.enums import NodeType


class NodePosition(BaseModel):
    x: float = 0.0
    y: float = 0.0


class GraphNode(BaseModel):
    """Node as sent by the graph editor; data keys are free-form per node type."""

    id: str = Field(..., min_length=1)
    type: NodeType
    data: dict[str, Any] = Field(default_factory=dict)
    position: NodePosition = Field(default_factory=NodePosition)


class GraphEdge(BaseModel):
    id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    condition: str | None = None
    is_default: bool = False
    is_reject: bool = False
    label: str | None = None


class GraphPayload(BaseModel):
    """Serialized workflow graph: nodes and edges."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    def to_graph(self) -> WorkflowGraph:
        return WorkflowGraph.from_dict(self.model_dump(mode="json"))


class WorkflowPublishRequest(BaseModel):
    """Request body for publishing a definition (new name or next version)."""

    name: str = Field(..., min_length=1, max_length=255)
    entity_type: str = Field(..., min_length=1, max_length=128)
    description: str | None = None
    is_active: bool = True
    graph: GraphPayload


class WorkflowUpdateRequest(BaseModel):
    graph: GraphPayload
    description: str | None = None


class WorkflowActivationRequest(BaseModel):
    is_active: bool


class ValidationIssueResponse(BaseModel):
    code: str
    message: str
    node_id: str | None = None
    edge_id: str | None = None
    suggestion: str | None = None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[ValidationIssueResponse]
    warnings: list[ValidationIssueResponse]
    info: list[ValidationIssueResponse]

    @classmethod
    def from_result(cls, result: ValidationResult) -> ValidationResponse:
        return cls.model_validate(result.to_dict())


class WorkflowDefinitionResponse(BaseModel):
    """Workflow definition response; graph is the serialized node/edge shape."""

    id: str
    name: str
    description: str | None
    entity_type: str
    version: int
    is_active: bool
    graph: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_result(cls, d: WorkflowDefinitionResult) -> WorkflowDefinitionResponse:
        return cls(
            id=d.id,
            name=d.name,
            description=d.description,
            entity_type=d.entity_type,
            version=d.version,
            is_active=d.is_active,
            graph=d.graph.to_dict(),
            created_at=d.created_at,
            updated_at=d.updated_at,
        )


class PublishResponse(BaseModel):
    published: bool
    definition: WorkflowDefinitionResponse | None
    validation: ValidationResponse

    @classmethod
    def from_result(cls, result: PublishResult) -> PublishResponse:
        return cls(
            published=result.published,
            definition=(
                WorkflowDefinitionResponse.from_result(result.definition)
                if result.definition
                else None
            ),
            validation=ValidationResponse.from_result(result.validation),
        )


class NodeTemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    type: str
    default_data: dict[str, Any]

    @classmethod
    def from_template(cls, t: NodeTemplate) -> NodeTemplateResponse:
        return cls(
            id=t.id,
            name=t.name,
            description=t.description,
            category=t.category,
            type=t.type.value,
            default_data=dict(t.default_data),
        )


class WorkflowTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    category: str
    node_count: int
    edge_count: int

    @classmethod
    def from_template(cls, t: WorkflowTemplate) -> WorkflowTemplateResponse:
        return cls(
            id=t.id,
            name=t.name,
            description=t.description,
            category=t.category,
            node_count=len(t.nodes),
            edge_count=len(t.edges),
        )


class TemplateInstantiateResponse(BaseModel):
    """Fresh graph built from a template, with its validation."""

    graph: dict[str, Any]
    validation: ValidationResponse


class NodeInstantiateRequest(BaseModel):
    position: NodePosition = Field(default_factory=NodePosition)
    overrides: dict[str, Any] = Field(default_factory=dict)
