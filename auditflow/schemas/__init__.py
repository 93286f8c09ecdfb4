"""Pydantic request/response schemas for the API."""

from auditflow.schemas.health import HealthResponse, ReadinessResponse
from auditflow.schemas.instance import TransitionResponse, WorkflowInstanceResponse
from auditflow.schemas.job import JobResponse, QueueStatusResponse
from auditflow.schemas.workflow import (
    GraphPayload,
    PublishResponse,
    ValidationResponse,
    WorkflowDefinitionResponse,
)

__all__ = [
    "GraphPayload",
    "HealthResponse",
    "JobResponse",
    "PublishResponse",
    "QueueStatusResponse",
    "ReadinessResponse",
    "TransitionResponse",
    "ValidationResponse",
    "WorkflowDefinitionResponse",
    "WorkflowInstanceResponse",
]
