"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from auditflow.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from auditflow.api.v1.endpoints import (
    analytics,
    assignments,
    delegations,
    health,
    instances,
    jobs,
    notifications,
    sync,
    websocket as ws_endpoint,
    workflows,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
api_router.include_router(
    instances.router, prefix="/workflow-instances", tags=["workflow-instances"]
)
api_router.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
api_router.include_router(delegations.router, prefix="/delegations", tags=["delegations"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(
    notifications.router, prefix="/notifications", tags=["notifications"]
)
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
api_router.include_router(ws_endpoint.router, prefix="/ws", tags=["websocket"])
