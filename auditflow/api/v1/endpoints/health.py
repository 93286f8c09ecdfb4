"""Health check endpoints: liveness and readiness checks."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from auditflow.infrastructure.persistence.database import get_session_factory
from auditflow.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Database unreachable", "model": ReadinessResponse}},
)
async def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """Return 200 when the database answers; include per-queue job counts."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content=ReadinessResponse(
                status="not_ready", database=type(e).__name__
            ).model_dump(),
        )
    queues = {}
    for name, queue in getattr(request.app.state, "queues", {}).items():
        queues[name] = (await queue.get_queue_status()).to_dict()
    return ReadinessResponse(queues=queues)
