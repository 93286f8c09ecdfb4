"""Overdue sweep use case: escalate pending assignments past deadline and
remind assignees whose deadline is close."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auditflow.application.dtos.workflow import EscalationOutcome, OverdueProcessingResult

if TYPE_CHECKING:
    from auditflow.application.services.workflow_runtime import WorkflowRuntime

logger = logging.getLogger(__name__)


class ProcessOverdueAssignmentsUseCase:
    """Detect overdue work and hand each item to the runtime's escalation handler.

    One failing assignment does not stop the sweep; it is reported with
    status "failed" and the error message. Deadline reminders run after the
    escalations; a reminder failure is logged and leaves reminders_sent at 0.
    """

    def __init__(self, runtime: WorkflowRuntime) -> None:
        self.runtime = runtime

    async def execute(self, limit: int = 100) -> OverdueProcessingResult:
        overdue = await self.runtime.get_overdue_assignments(limit=limit)
        results: list[EscalationOutcome] = []
        for assignment in overdue:
            try:
                outcome = await self.runtime.escalate(assignment.id)
            except Exception as e:
                logger.exception("Escalation failed for assignment %s", assignment.id)
                outcome = EscalationOutcome(
                    assignment_id=assignment.id, status="failed", error=str(e)
                )
            results.append(outcome)
        escalated = sum(1 for r in results if r.status == "escalated")
        failed = sum(1 for r in results if r.status == "failed")
        if overdue:
            logger.info(
                "Overdue sweep: %d found, %d escalated, %d failed",
                len(overdue),
                escalated,
                failed,
            )
        try:
            reminders = await self.runtime.send_deadline_reminders(limit=limit)
        except Exception:
            logger.exception("Deadline reminders failed")
            reminders = 0
        return OverdueProcessingResult(
            total=len(overdue),
            escalated=escalated,
            failed=failed,
            results=results,
            reminders_sent=reminders,
        )
