"""Builds a WorkflowRuntime over one AsyncSession.

Used by the API dependencies and by scripts; every collaborator shares the
session so a transition commits or rolls back as one unit.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from auditflow.application.interfaces import IAssignmentNotifier
from auditflow.application.services.assignment_resolver import (
    AssignmentResolver,
    coerce_strategy,
)
from auditflow.application.services.escalation_handler import RoleEscalationHandler
from auditflow.application.services.workflow_runtime import WorkflowRuntime
from auditflow.core.config import Settings, get_settings
from auditflow.infrastructure.persistence.repositories import (
    AssignmentCursorRepository,
    DelegationRepository,
    StepAssignmentRepository,
    TimelineRepository,
    UserDirectoryRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from auditflow.shared.utils.datetime import utc_now


def build_assignment_resolver(
    session: AsyncSession,
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utc_now,
    rng: random.Random | None = None,
) -> AssignmentResolver:
    settings = settings or get_settings()
    return AssignmentResolver(
        UserDirectoryRepository(session),
        DelegationRepository(session),
        StepAssignmentRepository(session),
        AssignmentCursorRepository(session),
        default_strategy=coerce_strategy(settings.default_assignment_strategy),
        max_cursor_retries=settings.round_robin_max_retries,
        clock=clock,
        rng=rng,
    )


def build_workflow_runtime(
    session: AsyncSession,
    settings: Settings | None = None,
    *,
    notifier: IAssignmentNotifier | None = None,
    clock: Callable[[], datetime] = utc_now,
    rng: random.Random | None = None,
) -> WorkflowRuntime:
    """Runtime with repositories, resolver and role escalation wired in."""
    settings = settings or get_settings()
    resolver = build_assignment_resolver(session, settings, clock=clock, rng=rng)
    runtime = WorkflowRuntime(
        WorkflowDefinitionRepository(session),
        WorkflowInstanceRepository(session),
        StepAssignmentRepository(session),
        TimelineRepository(session),
        resolver,
        users=UserDirectoryRepository(session),
        notifier=notifier,
        clock=clock,
        default_deadline_hours=settings.default_deadline_hours,
        approaching_hours=settings.deadline_approaching_hours,
    )
    runtime.escalation_handler = RoleEscalationHandler(runtime, resolver)
    return runtime
