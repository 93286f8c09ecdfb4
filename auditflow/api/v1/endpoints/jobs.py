"""Background job API: queue status, inspect, remove and retry jobs."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from auditflow.api.v1.dependencies import get_queue
from auditflow.core.limiter import limit_writes
from auditflow.domain.exceptions import ResourceNotFoundException
from auditflow.infrastructure.queue import JobQueue
from auditflow.schemas.job import JobRemovedResponse, JobResponse, QueueStatusResponse

router = APIRouter()


@router.get("/{queue_name}/status", response_model=QueueStatusResponse)
async def get_queue_status(queue: Annotated[JobQueue, Depends(get_queue)]):
    return await queue.get_queue_status()


@router.get("/{queue_name}/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, queue: Annotated[JobQueue, Depends(get_queue)]):
    job = await queue.get_job(job_id)
    if job is None:
        raise ResourceNotFoundException("background_job", job_id)
    return job


@router.delete("/{queue_name}/{job_id}", response_model=JobRemovedResponse)
@limit_writes
async def remove_job(
    request: Request, job_id: str, queue: Annotated[JobQueue, Depends(get_queue)]
):
    """Remove a job that is still waiting or delayed; running jobs are not touched."""
    return JobRemovedResponse(job_id=job_id, removed=await queue.remove(job_id))


@router.post("/{queue_name}/{job_id}/retry", response_model=JobResponse)
@limit_writes
async def retry_job(
    request: Request, job_id: str, queue: Annotated[JobQueue, Depends(get_queue)]
):
    """Put a failed job back in the waiting state with a fresh attempt budget."""
    return await queue.retry(job_id)
