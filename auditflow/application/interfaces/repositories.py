"""Repository interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations must fulfill (DIP).
All types reference application DTOs only; no infrastructure imports.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from auditflow.application.dtos.sync import UserRecord
    from auditflow.application.dtos.workflow import (
        DelegationResult,
        DirectoryUser,
        StepAssignmentResult,
        TimelineEventResult,
        UserWorkload,
        WorkflowDefinitionResult,
        WorkflowInstanceResult,
    )
    from auditflow.domain.entities.workflow_graph import WorkflowGraph


UpsertOutcome = Literal["created", "updated", "skipped"]


class IWorkflowDefinitionRepository(Protocol):
    """Protocol for workflow definition repository (DIP)."""

    async def get_by_id(self, definition_id: str) -> WorkflowDefinitionResult | None:
        """Return definition by ID."""

    async def get_active_for_entity_type(
        self, entity_type: str
    ) -> WorkflowDefinitionResult | None:
        """Return the newest active definition governing entity_type."""

    async def get_latest_version(self, name: str) -> WorkflowDefinitionResult | None:
        """Return the highest version of the named definition."""

    async def list_definitions(
        self,
        entity_type: str | None = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> list[WorkflowDefinitionResult]:
        """Return definitions, newest first."""

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

    async def deactivate_other_versions(self, name: str, keep_id: str) -> int:
        """Deactivate every version of name except keep_id; return rows changed."""

    async def set_active(self, definition_id: str, is_active: bool) -> None:
        """Toggle a definition's active flag."""

    async def count_instances(self, definition_id: str) -> int:
        """Return how many instances reference the definition."""

    async def replace_graph(
        self,
        definition_id: str,
        graph: WorkflowGraph,
        *,
        description: str | None = None,
    ) -> WorkflowDefinitionResult:
        """Overwrite the graph of an unreferenced definition."""


class IWorkflowInstanceRepository(Protocol):
    """Protocol for workflow instance repository (DIP)."""

    async def get_by_id(
        self, instance_id: str, *, for_update: bool = False
    ) -> WorkflowInstanceResult | None:
        """Return instance by ID; for_update locks the row where supported."""

    async def get_for_entity(
        self, definition_id: str, entity_type: str, entity_id: str
    ) -> WorkflowInstanceResult | None:
        """Return the instance of definition bound to the entity."""

    async def list_for_entity(
        self, entity_type: str, entity_id: str
    ) -> list[WorkflowInstanceResult]:
        """Return every instance bound to the entity, newest first."""

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

    async def update_state(
        self,
        instance_id: str,
        *,
        current_node_id: str | None,
        status: str,
        completed_at: datetime | None = None,
    ) -> WorkflowInstanceResult:
        """Move the instance pointer and status."""

    async def list_all(self) -> list[WorkflowInstanceResult]:
        """Return all instances (analytics)."""


class IStepAssignmentRepository(Protocol):
    """Protocol for step assignment repository (DIP)."""

    async def get_by_id(
        self, assignment_id: str, *, for_update: bool = False
    ) -> StepAssignmentResult | None:
        """Return assignment by ID."""

    async def create_assignment(
        self,
        workflow_instance_id: str,
        step_id: str,
        visit_id: str,
        assignment_type: str,
        *,
        assigned_role: str | None,
        assigned_user_id: str | None,
        deadline: datetime | None,
    ) -> StepAssignmentResult:
        """Create a pending assignment."""

    async def close_assignment(
        self,
        assignment_id: str,
        status: str,
        *,
        completed_at: datetime,
        completed_by: str | None = None,
        comment: str | None = None,
    ) -> StepAssignmentResult:
        """Move a pending assignment to a closed status."""

    async def mark_escalated(
        self, assignment_id: str, *, escalated_at: datetime, escalated_to: str | None
    ) -> StepAssignmentResult:
        """Mark an assignment escalated."""

    async def close_pending_for_instance(
        self,
        workflow_instance_id: str,
        status: str,
        *,
        completed_at: datetime,
        visit_id: str | None = None,
        exclude_id: str | None = None,
    ) -> int:
        """Close every pending assignment of the instance (optionally one visit)."""

    async def list_for_visit(
        self, workflow_instance_id: str, visit_id: str
    ) -> list[StepAssignmentResult]:
        """Return assignments created for one node entry."""

    async def list_for_instance(
        self, workflow_instance_id: str
    ) -> list[StepAssignmentResult]:
        """Return all assignments of the instance, oldest first."""

    async def list_pending(self) -> list[StepAssignmentResult]:
        """Return every pending assignment."""

    async def list_all(self) -> list[StepAssignmentResult]:
        """Return all assignments (analytics)."""

    async def get_overdue(
        self, now: datetime, limit: int = 100
    ) -> list[StepAssignmentResult]:
        """Return pending assignments with deadline < now, oldest deadline first."""

    async def get_due_soon(
        self, now: datetime, until: datetime, limit: int = 100
    ) -> list[StepAssignmentResult]:
        """Return pending, assigned rows with deadline between now and until."""

    async def claim_reminder(
        self, assignment_id: str, *, sent_at: datetime, not_since: datetime
    ) -> bool:
        """Record a reminder; False when one was already sent after not_since."""

    async def get_unassigned(self, limit: int = 100) -> list[StepAssignmentResult]:
        """Return pending role assignments with no user."""

    async def get_for_user(
        self, user_id: str, roles: list[str], include_completed: bool = False
    ) -> list[StepAssignmentResult]:
        """Return the user's direct assignments plus unassigned work for their roles."""

    async def get_workloads(
        self, user_ids: list[str], now: datetime
    ) -> dict[str, UserWorkload]:
        """Return pending/overdue counts for each user id (zeros when none)."""


class ITimelineRepository(Protocol):
    """Protocol for the append-only timeline (DIP)."""

    async def append(
        self,
        workflow_instance_id: str,
        action: str,
        *,
        actor_id: str | None = None,
        step_id: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> TimelineEventResult:
        """Append the next event of the instance."""

    async def list_for_instance(
        self, workflow_instance_id: str
    ) -> list[TimelineEventResult]:
        """Return events in sequence order."""

    async def list_since(self, since: datetime) -> list[TimelineEventResult]:
        """Return events created at or after since (analytics)."""


class IDelegationRepository(Protocol):
    """Protocol for delegation repository (DIP)."""

    async def get_by_id(self, delegation_id: str) -> DelegationResult | None:
        """Return delegation by ID."""

    async def create_delegation(
        self,
        from_user_id: str,
        to_user_id: str,
        start_date: datetime,
        end_date: datetime,
        *,
        role: str | None = None,
        reason: str | None = None,
    ) -> DelegationResult:
        """Create delegation; return created entity."""

    async def deactivate(self, delegation_id: str) -> DelegationResult | None:
        """Set is_active False; return updated entity or None if not found."""

    async def list_for_user(
        self, user_id: str, *, active_only: bool = True
    ) -> list[DelegationResult]:
        """Return delegations given or received by the user."""

    async def get_active_for_users(
        self, user_ids: list[str], role: str | None, now: datetime
    ) -> dict[str, DelegationResult]:
        """Return the active delegation covering now for each delegating user."""


class IUserDirectoryRepository(Protocol):
    """Protocol for the user directory read/write model (DIP)."""

    async def list_active_users_with_role(self, role: str) -> list[DirectoryUser]:
        """Return active holders of role, ordered by email."""

    async def get_users(self, user_ids: list[str]) -> dict[str, DirectoryUser]:
        """Return users by id."""

    async def get_user_roles(self, user_id: str) -> list[str]:
        """Return role names held by the user."""

    async def upsert_user(self, record: UserRecord) -> UpsertOutcome:
        """Create or update a user (and role links) from a sync record."""

    async def ensure_role(self, name: str) -> str:
        """Return role id, creating the role if needed."""

    async def assign_role(self, user_id: str, role: str) -> None:
        """Link user to role (no-op if already linked)."""


class IAssignmentCursorRepository(Protocol):
    """Protocol for the per-role round-robin cursor (DIP)."""

    async def get(self, role: str) -> tuple[str | None, int] | None:
        """Return (last_user_id, version) or None when the role has no cursor yet."""

    async def compare_and_set(
        self, role: str, expected_version: int, last_user_id: str
    ) -> bool:
        """Write last_user_id if version still equals expected_version."""

    async def insert(self, role: str, last_user_id: str) -> bool:
        """Create the cursor row; False when another writer created it first."""

    async def force_set(self, role: str, last_user_id: str) -> None:
        """Unconditional write (last writer wins)."""
