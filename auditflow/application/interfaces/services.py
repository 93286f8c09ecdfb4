"""Service interfaces (ports) for the application layer.

Collaborators the workflow runtime and job families depend on. Concrete
implementations live in infrastructure.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from auditflow.application.dtos.jobs import JobOptions, JobResult, QueueStatus
    from auditflow.application.dtos.sync import SyncResult, UserRecord
    from auditflow.application.dtos.workflow import (
        EscalationOutcome,
        StepAssignmentResult,
        WorkflowInstanceResult,
    )
    from auditflow.domain.enums import AssignmentStrategy


class IAssignmentResolver(Protocol):
    """Picks the concrete user for a role-targeted step."""

    async def resolve(
        self, role: str, strategy: AssignmentStrategy | None = None
    ) -> str | None:
        """Return a user id, or None when the role has no members."""

    async def substitute_delegate(self, user_id: str, role: str | None = None) -> str:
        """Return the active delegate of user_id, or user_id itself."""


class IEscalationHandler(Protocol):
    """Acts on an overdue assignment (reassign, notify, ...)."""

    async def escalate(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        now: datetime,
    ) -> EscalationOutcome:
        """Escalate one overdue assignment and report what happened."""


class IAssignmentNotifier(Protocol):
    """Told about assignment events the engine produces. Every call is fire-and-forget."""

    async def assignment_created(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        """A new assignment has an assignee."""

    async def assignment_escalated(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        """assignment replaces an overdue one and belongs to the escalation target."""

    async def assignment_approved(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
    ) -> None:
        """actor_id approved assignment; the instance starter hears about it."""

    async def assignment_rejected(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        actor_id: str,
        comment: str | None,
    ) -> None:
        """actor_id rejected assignment; the instance starter hears about it."""

    async def deadline_approaching(
        self, assignment: StepAssignmentResult, instance: WorkflowInstanceResult
    ) -> None:
        """assignment is due within the approaching window."""


class IJobQueue(Protocol):
    """Producer side of the durable job queue."""

    async def enqueue(
        self,
        name: str,
        payload: dict[str, Any],
        options: JobOptions | None = None,
    ) -> JobResult:
        """Add a job; an existing idempotency key returns the existing job."""

    async def remove(self, job_id: str) -> bool:
        """Remove a waiting/delayed job; False if missing or already picked up."""

    async def get_job(self, job_id: str) -> JobResult | None:
        """Return job by ID."""

    async def get_queue_status(self) -> QueueStatus:
        """Return job counts per state."""


class IRealtimeChannel(Protocol):
    """Fire-and-forget real-time broadcast."""

    async def send(self, channel: str, payload: dict[str, Any]) -> bool:
        """Publish payload; False when it could not be delivered."""


class ISyncStrategy(Protocol):
    """One source-specific way of pulling users into the directory."""

    async def sync(self, triggered_by: str | None = None) -> SyncResult:
        """Run the sync and return structured counts."""


class IDirectoryClient(Protocol):
    """Directory-service connection (LDAP or similar) behind a narrow interface."""

    async def search_users(self) -> list[dict[str, Any]]:
        """Return raw directory entries as attribute dicts."""

    async def close(self) -> None:
        """Release the connection."""


class IUserUpserter(Protocol):
    """Write side used by sync strategies."""

    async def upsert_user(self, record: UserRecord) -> str:
        """Return "created", "updated" or "skipped"."""
