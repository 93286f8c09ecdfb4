"""Escalation handler: moves an overdue step to the node's escalation role."""

from __future__ import annotations

import logging
from datetime import datetime

from auditflow.application.dtos.workflow import (
    EscalationOutcome,
    StepAssignmentResult,
    WorkflowInstanceResult,
)
from auditflow.application.interfaces import IAssignmentResolver
from auditflow.application.services.workflow_runtime import WorkflowRuntime

logger = logging.getLogger(__name__)


class RoleEscalationHandler:
    """Implements IEscalationHandler.

    The replacement goes to node.data.escalate_to, resolved with the node's
    strategy. Nodes without escalate_to are left alone and reported skipped.
    """

    def __init__(self, runtime: WorkflowRuntime, resolver: IAssignmentResolver) -> None:
        self.runtime = runtime
        self.resolver = resolver

    async def escalate(
        self,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        now: datetime,
    ) -> EscalationOutcome:
        definition = await self.runtime.definitions.get_by_id(instance.definition_id)
        node = definition.graph.node(assignment.step_id) if definition else None
        role = node.data.escalate_to if node else None
        if not role:
            return EscalationOutcome(
                assignment_id=assignment.id,
                status="skipped",
                error="No escalation role configured",
            )
        user_id = await self.resolver.resolve(role, node.data.assignment_strategy)  # type: ignore[union-attr]
        replacement = await self.runtime.record_escalation(
            assignment, escalate_to_role=role, escalate_to_user_id=user_id, now=now
        )
        logger.info(
            "Escalated assignment %s to role %s (user %s)",
            assignment.id,
            role,
            user_id or "unassigned",
        )
        return EscalationOutcome(
            assignment_id=assignment.id,
            status="escalated",
            escalated_to_role=role,
            escalated_to_user_id=user_id,
            new_assignment_id=replacement.id,
        )
