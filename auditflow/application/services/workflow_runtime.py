"""Workflow runtime engine: instantiate and advance graphs against business entities.

The engine runs synchronously inside the caller's database transaction. Each
public operation loads the instance (row-locked where supported), applies one
transition, creates the step assignments for the node it lands on, and
appends timeline events. History is only ever appended to.

Two entry points are consumed by the surrounding application:
on_entity_eligible_for_workflow() and on_assignment_action().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from auditflow.application.dtos.workflow import (
    DeadlineStats,
    EscalationOutcome,
    StepAssignmentResult,
    TimelineEventResult,
    TransitionResult,
    WorkflowDefinitionResult,
    WorkflowInstanceResult,
)
from auditflow.application.interfaces.repositories import (
    IStepAssignmentRepository,
    ITimelineRepository,
    IUserDirectoryRepository,
    IWorkflowDefinitionRepository,
    IWorkflowInstanceRepository,
)
from auditflow.application.interfaces.services import (
    IAssignmentNotifier,
    IAssignmentResolver,
    IEscalationHandler,
)
from auditflow.application.services.deadlines import (
    APPROACHING_WINDOW_HOURS,
    DEFAULT_DEADLINE_HOURS,
    compute_deadline,
    deadline_status,
    node_deadline_hours,
)
from auditflow.domain.entities.workflow_graph import (
    Edge,
    Node,
    WorkflowGraph,
    decision_edge_kind,
    select_decision_edge,
)
from auditflow.domain.enums import (
    ApprovalType,
    AssignmentAction,
    AssignmentStatus,
    AssignmentType,
    DeadlineStatus,
    InstanceStatus,
    NodeType,
    TimelineAction,
)
from auditflow.domain.exceptions import (
    ConditionSyntaxException,
    InvalidTransitionException,
    ResourceNotFoundException,
    StructuralValidationException,
    ValidationException,
)
from auditflow.shared.telemetry.tracing import add_span_attributes, traced
from auditflow.shared.utils.datetime import utc_now
from auditflow.shared.utils.generators import generate_cuid

logger = logging.getLogger(__name__)

# Upper bound on decision/start hops taken without human action in one call.
MAX_AUTOMATIC_HOPS = 100

# One deadline reminder per assignment within this interval.
REMINDER_INTERVAL = timedelta(hours=24)

# Notifier events addressed to the assignee; skipped for unassigned work.
_ASSIGNEE_EVENTS = frozenset(
    {"assignment_created", "assignment_escalated", "deadline_approaching"}
)


@dataclass
class _Transition:
    """Accumulates what one engine call changed."""

    instance: WorkflowInstanceResult
    assignments: list[StepAssignmentResult] = field(default_factory=list)
    events: list[TimelineEventResult] = field(default_factory=list)

    def result(self) -> TransitionResult:
        return TransitionResult(
            instance=self.instance,
            assignments_created=list(self.assignments),
            events=list(self.events),
        )


class WorkflowRuntime:
    """State machine over workflow instances and their step assignments."""

    def __init__(
        self,
        definitions: IWorkflowDefinitionRepository,
        instances: IWorkflowInstanceRepository,
        assignments: IStepAssignmentRepository,
        timeline: ITimelineRepository,
        resolver: IAssignmentResolver,
        *,
        users: IUserDirectoryRepository | None = None,
        escalation_handler: IEscalationHandler | None = None,
        notifier: IAssignmentNotifier | None = None,
        clock: Callable[[], datetime] = utc_now,
        default_deadline_hours: float = DEFAULT_DEADLINE_HOURS,
        approaching_hours: float = APPROACHING_WINDOW_HOURS,
    ) -> None:
        self.definitions = definitions
        self.instances = instances
        self.assignments = assignments
        self.timeline = timeline
        self.resolver = resolver
        self.users = users
        self.escalation_handler = escalation_handler
        self.notifier = notifier
        self.clock = clock
        self.default_deadline_hours = default_deadline_hours
        self.approaching_hours = approaching_hours

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def on_entity_eligible_for_workflow(
        self,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any],
        started_by: str | None = None,
    ) -> TransitionResult | None:
        """Start the active workflow for entity_type, or return None when there is none."""
        definition = await self.definitions.get_active_for_entity_type(entity_type)
        if definition is None:
            logger.info("No active workflow for entity type %s", entity_type)
            return None
        return await self.start_instance(
            definition.id, entity_type, entity_id, metadata, started_by=started_by
        )

    @traced("workflow.start_instance")
    async def start_instance(
        self,
        definition_id: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any],
        *,
        started_by: str | None = None,
    ) -> TransitionResult:
        """Create an instance positioned on the start node's target.

        Idempotent per (definition, entity): an existing instance is returned
        unchanged.
        """
        definition = await self._require_definition(definition_id)
        if not definition.is_active:
            raise InvalidTransitionException(
                f"Workflow definition '{definition.name}' v{definition.version} is not active",
                definition_id=definition.id,
            )
        existing = await self.instances.get_for_entity(
            definition.id, entity_type, entity_id
        )
        if existing is not None:
            logger.info(
                "Instance %s already exists for %s/%s", existing.id, entity_type, entity_id
            )
            return TransitionResult(instance=existing)

        graph = definition.graph
        start = graph.start_node()
        if start is None:
            raise StructuralValidationException(
                [{"code": "missing_start", "message": "Workflow needs exactly one start node"}]
            )
        forward = graph.forward_edges(start.id)
        if not forward:
            raise StructuralValidationException(
                [
                    {
                        "code": "no_outgoing_edges",
                        "message": "Start node has no outgoing edge",
                        "node_id": start.id,
                    }
                ]
            )

        instance = await self.instances.create_instance(
            definition.id,
            entity_type,
            entity_id,
            current_node_id=start.id,
            metadata=metadata,
            started_by=started_by,
        )
        add_span_attributes(instance_id=instance.id)
        logger.info(
            "Started workflow %s for %s/%s (instance %s)",
            definition.name,
            entity_type,
            entity_id,
            instance.id,
        )
        tx = _Transition(instance=instance)
        await self._enter(tx, graph, forward[0].target, actor_id=started_by, via=forward[0])
        return tx.result()

    @traced("workflow.assignment_action")
    async def on_assignment_action(
        self,
        assignment_id: str,
        action: AssignmentAction | str,
        actor_id: str,
        comment: str | None = None,
    ) -> TransitionResult:
        """Approve or reject a pending assignment and advance the instance."""
        try:
            action = AssignmentAction(action)
        except ValueError as e:
            raise ValidationException(f"Unknown action '{action}'", field="action") from e

        assignment = await self.assignments.get_by_id(assignment_id, for_update=True)
        if assignment is None:
            raise ResourceNotFoundException("step_assignment", assignment_id)
        if assignment.status != AssignmentStatus.PENDING.value:
            raise InvalidTransitionException(
                "Assignment is no longer pending",
                current_status=assignment.status,
                assignment_id=assignment.id,
            )
        instance = await self._require_active_instance(assignment.workflow_instance_id)
        if instance.current_node_id != assignment.step_id:
            raise InvalidTransitionException(
                "Assignment belongs to a step the instance has already left",
                current_status=instance.status,
                assignment_id=assignment.id,
            )
        definition = await self._require_definition(instance.definition_id)
        graph = definition.graph
        node = self._require_node(graph, assignment.step_id)
        now = self.clock()
        tx = _Transition(instance=instance)

        if action is AssignmentAction.REJECT:
            await self.assignments.close_assignment(
                assignment.id,
                AssignmentStatus.REJECTED.value,
                completed_at=now,
                completed_by=actor_id,
                comment=comment,
            )
            await self.assignments.close_pending_for_instance(
                instance.id,
                AssignmentStatus.SUPERSEDED.value,
                completed_at=now,
                visit_id=assignment.visit_id,
            )
            reject_edge = graph.reject_edge(node.id)
            await self._append(
                tx,
                TimelineAction.REJECT,
                actor_id=actor_id,
                step_id=node.id,
                payload={
                    "assignment_id": assignment.id,
                    "comment": comment,
                    "outcome": "rerouted" if reject_edge else "cancelled",
                },
            )
            await self._notify("assignment_rejected", assignment, instance, actor_id, comment)
            if reject_edge is not None:
                await self._enter(tx, graph, reject_edge.target, actor_id=actor_id, via=reject_edge)
            else:
                tx.instance = await self.instances.update_state(
                    instance.id,
                    current_node_id=node.id,
                    status=InstanceStatus.CANCELLED.value,
                    completed_at=now,
                )
                logger.info("Instance %s cancelled by rejection at %s", instance.id, node.id)
            return tx.result()

        await self.assignments.close_assignment(
            assignment.id,
            AssignmentStatus.COMPLETED.value,
            completed_at=now,
            completed_by=actor_id,
            comment=comment,
        )
        await self._append(
            tx,
            TimelineAction.APPROVE,
            actor_id=actor_id,
            step_id=node.id,
            payload={"assignment_id": assignment.id, "comment": comment},
        )
        await self._notify("assignment_approved", assignment, instance, actor_id)
        if node.type == NodeType.APPROVAL and not await self._quorum_reached(
            node, assignment, now
        ):
            return tx.result()

        forward = graph.forward_edges(node.id)
        if not forward:
            raise InvalidTransitionException(
                f"Node '{node.id}' has no outgoing edge", node_id=node.id
            )
        await self._enter(tx, graph, forward[0].target, actor_id=actor_id, via=forward[0])
        return tx.result()

    # ------------------------------------------------------------------
    # Administrative transitions
    # ------------------------------------------------------------------

    @traced("workflow.cancel")
    async def cancel_instance(
        self, instance_id: str, actor_id: str | None = None, reason: str | None = None
    ) -> TransitionResult:
        """Cancel from any non-terminal state; in-flight assignments become rejected."""
        instance = await self._require_active_instance(instance_id)
        now = self.clock()
        rejected = await self.assignments.close_pending_for_instance(
            instance.id, AssignmentStatus.REJECTED.value, completed_at=now
        )
        tx = _Transition(instance=instance)
        tx.instance = await self.instances.update_state(
            instance.id,
            current_node_id=instance.current_node_id,
            status=InstanceStatus.CANCELLED.value,
            completed_at=now,
        )
        await self._append(
            tx,
            TimelineAction.CANCEL,
            actor_id=actor_id,
            step_id=instance.current_node_id,
            payload={"reason": reason, "rejected_assignments": rejected},
        )
        logger.info("Instance %s cancelled by %s", instance.id, actor_id)
        return tx.result()

    @traced("workflow.veto")
    async def veto_instance(
        self, instance_id: str, actor_id: str, comment: str | None = None
    ) -> TransitionResult:
        """Jump straight to the end node and complete the instance."""
        instance = await self._require_active_instance(instance_id)
        definition = await self._require_definition(instance.definition_id)
        ends = definition.graph.nodes_of_type(NodeType.END)
        if not ends:
            raise ValidationException("Workflow has no end node to veto to")
        now = self.clock()
        await self.assignments.close_pending_for_instance(
            instance.id, AssignmentStatus.SUPERSEDED.value, completed_at=now
        )
        tx = _Transition(instance=instance)
        tx.instance = await self.instances.update_state(
            instance.id,
            current_node_id=ends[0].id,
            status=InstanceStatus.COMPLETED.value,
            completed_at=now,
        )
        await self._append(
            tx,
            TimelineAction.VETO,
            actor_id=actor_id,
            step_id=ends[0].id,
            payload={
                "from_node_id": instance.current_node_id,
                "comment": comment or "Vetoed by authorized user",
            },
        )
        return tx.result()

    @traced("workflow.reassign")
    async def reassign(
        self,
        assignment_id: str,
        to_user_id: str,
        actor_id: str | None = None,
        reason: str | None = None,
    ) -> TransitionResult:
        """Hand a pending assignment to another user within the same node visit."""
        assignment = await self.assignments.get_by_id(assignment_id, for_update=True)
        if assignment is None:
            raise ResourceNotFoundException("step_assignment", assignment_id)
        if assignment.status != AssignmentStatus.PENDING.value:
            raise InvalidTransitionException(
                "Only pending assignments can be reassigned",
                current_status=assignment.status,
                assignment_id=assignment.id,
            )
        instance = await self._require_active_instance(assignment.workflow_instance_id)
        now = self.clock()
        await self.assignments.close_assignment(
            assignment.id,
            AssignmentStatus.SUPERSEDED.value,
            completed_at=now,
            completed_by=actor_id,
            comment=reason,
        )
        tx = _Transition(instance=instance)
        replacement = await self.assignments.create_assignment(
            instance.id,
            assignment.step_id,
            assignment.visit_id,
            AssignmentType.USER.value,
            assigned_role=assignment.assigned_role,
            assigned_user_id=to_user_id,
            deadline=assignment.deadline,
        )
        tx.assignments.append(replacement)
        await self._append(
            tx,
            TimelineAction.REASSIGN,
            actor_id=actor_id,
            step_id=assignment.step_id,
            payload={
                "from_assignment_id": assignment.id,
                "to_assignment_id": replacement.id,
                "from_user_id": assignment.assigned_user_id,
                "to_user_id": to_user_id,
                "reason": reason,
            },
        )
        await self._notify("assignment_created", replacement, tx.instance)
        return tx.result()

    @traced("workflow.escalate")
    async def escalate(self, assignment_id: str) -> EscalationOutcome:
        """Hand one overdue assignment to the escalation handler."""
        assignment = await self.assignments.get_by_id(assignment_id, for_update=True)
        if assignment is None:
            raise ResourceNotFoundException("step_assignment", assignment_id)
        now = self.clock()
        if assignment.status != AssignmentStatus.PENDING.value:
            return EscalationOutcome(assignment_id=assignment.id, status="skipped")
        if assignment.deadline is None or assignment.deadline >= now:
            return EscalationOutcome(
                assignment_id=assignment.id, status="skipped", error="Not overdue"
            )
        instance = await self.instances.get_by_id(assignment.workflow_instance_id)
        if instance is None or InstanceStatus(instance.status).is_terminal:
            return EscalationOutcome(
                assignment_id=assignment.id, status="skipped", error="Instance not active"
            )
        if self.escalation_handler is None:
            return EscalationOutcome(
                assignment_id=assignment.id, status="skipped", error="No escalation handler"
            )
        return await self.escalation_handler.escalate(assignment, instance, now)

    async def record_escalation(
        self,
        assignment: StepAssignmentResult,
        *,
        escalate_to_role: str,
        escalate_to_user_id: str | None,
        now: datetime,
    ) -> StepAssignmentResult:
        """Close assignment as escalated and open its replacement; appends one event.

        Used by escalation handlers so the bookkeeping stays in the engine.
        """
        await self.assignments.mark_escalated(
            assignment.id,
            escalated_at=now,
            escalated_to=escalate_to_user_id or escalate_to_role,
        )
        instance = await self._require_active_instance(assignment.workflow_instance_id)
        definition = await self._require_definition(instance.definition_id)
        node = self._require_node(definition.graph, assignment.step_id)
        replacement = await self.assignments.create_assignment(
            instance.id,
            assignment.step_id,
            assignment.visit_id,
            AssignmentType.ROLE.value,
            assigned_role=escalate_to_role,
            assigned_user_id=escalate_to_user_id,
            deadline=compute_deadline(
                now, node_deadline_hours(node.data, self.default_deadline_hours)
            ),
        )
        tx = _Transition(instance=instance)
        await self._append(
            tx,
            TimelineAction.ESCALATE,
            actor_id=None,
            step_id=assignment.step_id,
            payload={
                "from_assignment_id": assignment.id,
                "to_assignment_id": replacement.id,
                "escalated_to_role": escalate_to_role,
                "escalated_to_user_id": escalate_to_user_id,
                "deadline": assignment.deadline.isoformat() if assignment.deadline else None,
            },
        )
        await self._notify("assignment_escalated", replacement, instance)
        return replacement

    @traced("workflow.deadline_reminders")
    async def send_deadline_reminders(self, limit: int = 100) -> int:
        """Remind assignees whose deadline falls inside the approaching window.

        An assignment is reminded at most once per REMINDER_INTERVAL. Returns
        how many reminders were handed to the notifier.
        """
        if self.notifier is None:
            return 0
        now = self.clock()
        due = await self.assignments.get_due_soon(
            now, now + timedelta(hours=self.approaching_hours), limit=limit
        )
        sent = 0
        for assignment in due:
            instance = await self.instances.get_by_id(assignment.workflow_instance_id)
            if instance is None or InstanceStatus(instance.status).is_terminal:
                continue
            claimed = await self.assignments.claim_reminder(
                assignment.id, sent_at=now, not_since=now - REMINDER_INTERVAL
            )
            if not claimed:
                continue
            await self._notify("deadline_approaching", assignment, instance)
            sent += 1
        if sent:
            logger.info("Sent %d deadline reminder(s)", sent)
        return sent

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_instance(self, instance_id: str) -> WorkflowInstanceResult:
        instance = await self.instances.get_by_id(instance_id)
        if instance is None:
            raise ResourceNotFoundException("workflow_instance", instance_id)
        return instance

    async def get_timeline(self, instance_id: str) -> list[TimelineEventResult]:
        await self.get_instance(instance_id)
        return await self.timeline.list_for_instance(instance_id)

    async def get_assignments(self, instance_id: str) -> list[StepAssignmentResult]:
        await self.get_instance(instance_id)
        return await self.assignments.list_for_instance(instance_id)

    async def get_overdue_assignments(self, limit: int = 100) -> list[StepAssignmentResult]:
        return await self.assignments.get_overdue(self.clock(), limit=limit)

    async def get_unassigned_assignments(
        self, limit: int = 100
    ) -> list[StepAssignmentResult]:
        return await self.assignments.get_unassigned(limit=limit)

    async def get_my_tasks(
        self, user_id: str, include_completed: bool = False
    ) -> list[StepAssignmentResult]:
        """Direct assignments plus unassigned steps for roles the user holds."""
        roles = await self.users.get_user_roles(user_id) if self.users else []
        return await self.assignments.get_for_user(
            user_id, roles, include_completed=include_completed
        )

    async def get_deadline_stats(self) -> DeadlineStats:
        now = self.clock()
        counts = {status: 0 for status in DeadlineStatus}
        without = 0
        pending = await self.assignments.list_pending()
        for assignment in pending:
            if assignment.deadline is None:
                without += 1
                continue
            counts[deadline_status(assignment.deadline, now, self.approaching_hours)] += 1
        return DeadlineStats(
            total_pending=len(pending),
            on_time=counts[DeadlineStatus.ON_TIME],
            approaching=counts[DeadlineStatus.APPROACHING],
            overdue=counts[DeadlineStatus.OVERDUE],
            without_deadline=without,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _require_definition(self, definition_id: str) -> WorkflowDefinitionResult:
        definition = await self.definitions.get_by_id(definition_id)
        if definition is None:
            raise ResourceNotFoundException("workflow_definition", definition_id)
        return definition

    async def _require_active_instance(self, instance_id: str) -> WorkflowInstanceResult:
        instance = await self.instances.get_by_id(instance_id, for_update=True)
        if instance is None:
            raise ResourceNotFoundException("workflow_instance", instance_id)
        if InstanceStatus(instance.status).is_terminal:
            raise InvalidTransitionException(
                f"Workflow instance is {instance.status}",
                current_status=instance.status,
                instance_id=instance.id,
            )
        return instance

    @staticmethod
    def _require_node(graph: WorkflowGraph, node_id: str) -> Node:
        node = graph.node(node_id)
        if node is None:
            raise InvalidTransitionException(
                f"Node '{node_id}' does not exist in the workflow definition",
                node_id=node_id,
            )
        return node

    async def _append(
        self,
        tx: _Transition,
        action: TimelineAction,
        *,
        actor_id: str | None,
        step_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        event = await self.timeline.append(
            tx.instance.id,
            action.value,
            actor_id=actor_id,
            step_id=step_id,
            payload=payload,
        )
        tx.events.append(event)

    async def _enter(
        self,
        tx: _Transition,
        graph: WorkflowGraph,
        node_id: str,
        *,
        actor_id: str | None,
        via: Edge | None = None,
    ) -> None:
        """Enter node_id, passing through decision nodes until a resting node."""
        for _ in range(MAX_AUTOMATIC_HOPS):
            node = self._require_node(graph, node_id)

            if node.type == NodeType.END:
                tx.instance = await self.instances.update_state(
                    tx.instance.id,
                    current_node_id=node.id,
                    status=InstanceStatus.COMPLETED.value,
                    completed_at=self.clock(),
                )
                await self._append(
                    tx,
                    TimelineAction.COMPLETE,
                    actor_id=actor_id,
                    step_id=node.id,
                    payload={"via_edge_id": via.id if via else None},
                )
                logger.info("Instance %s completed at %s", tx.instance.id, node.id)
                return

            if node.type in (NodeType.DECISION, NodeType.START):
                if node.type == NodeType.DECISION:
                    edge, matched = self._choose_decision_edge(graph, node, tx.instance)
                else:
                    forward = graph.forward_edges(node.id)
                    if not forward:
                        raise InvalidTransitionException(
                            f"Node '{node.id}' has no outgoing edge", node_id=node.id
                        )
                    edge, matched = forward[0], True
                await self._append(
                    tx,
                    TimelineAction.ENTER_NODE,
                    actor_id=actor_id,
                    step_id=node.id,
                    payload={
                        "node_type": node.type.value,
                        "edge_id": edge.id,
                        "target_node_id": edge.target,
                        "matched": matched,
                    },
                )
                node_id, via = edge.target, edge
                continue

            tx.instance = await self.instances.update_state(
                tx.instance.id,
                current_node_id=node.id,
                status=InstanceStatus.ACTIVE.value,
            )
            visit_id = generate_cuid()
            created = await self._create_assignments(tx.instance, node, visit_id)
            tx.assignments.extend(created)
            await self._append(
                tx,
                TimelineAction.ENTER_NODE,
                actor_id=actor_id,
                step_id=node.id,
                payload={
                    "node_type": node.type.value,
                    "visit_id": visit_id,
                    "via_edge_id": via.id if via else None,
                    "assignment_ids": [a.id for a in created],
                },
            )
            for assignment in created:
                await self._notify("assignment_created", assignment, tx.instance)
            return

        raise InvalidTransitionException(
            f"Routing did not reach an actionable or end node within {MAX_AUTOMATIC_HOPS} hops",
            instance_id=tx.instance.id,
        )

    def _choose_decision_edge(
        self, graph: WorkflowGraph, node: Node, instance: WorkflowInstanceResult
    ) -> tuple[Edge, bool]:
        edges = graph.forward_edges(node.id)
        if not edges:
            raise InvalidTransitionException(
                f"Decision '{node.id}' has no outgoing edge", node_id=node.id
            )
        try:
            edge, matched = select_decision_edge(node, edges, instance.metadata)
        except ConditionSyntaxException:
            logger.exception(
                "Decision %s on instance %s has an unreadable condition; using default branch",
                node.id,
                instance.id,
            )
            edge = next((e for e in edges if decision_edge_kind(e) == "fallback"), None)
            matched = False
        if edge is None:
            logger.warning(
                "Decision %s on instance %s matched no edge and has no default; "
                "following first edge %s",
                node.id,
                instance.id,
                edges[0].id,
            )
            edge = edges[0]
        return edge, matched

    async def _quorum_reached(
        self, node: Node, approved: StepAssignmentResult, now: datetime
    ) -> bool:
        """ANY: first approval wins and siblings are superseded. ALL: every approver."""
        if node.data.approval_type == ApprovalType.ANY:
            await self.assignments.close_pending_for_instance(
                approved.workflow_instance_id,
                AssignmentStatus.SUPERSEDED.value,
                completed_at=now,
                visit_id=approved.visit_id,
            )
            return True
        siblings = await self.assignments.list_for_visit(
            approved.workflow_instance_id, approved.visit_id
        )
        return all(s.status == AssignmentStatus.COMPLETED.value for s in siblings)

    async def _create_assignments(
        self, instance: WorkflowInstanceResult, node: Node, visit_id: str
    ) -> list[StepAssignmentResult]:
        data = node.data
        deadline = compute_deadline(
            self.clock(), node_deadline_hours(data, self.default_deadline_hours)
        )

        if node.type == NodeType.APPROVAL and data.approvers:
            created: list[StepAssignmentResult] = []
            for approver in dict.fromkeys(data.approvers):
                user_id = await self.resolver.substitute_delegate(approver, data.required_role)
                created.append(
                    await self.assignments.create_assignment(
                        instance.id,
                        node.id,
                        visit_id,
                        AssignmentType.USER.value,
                        assigned_role=data.required_role,
                        assigned_user_id=user_id,
                        deadline=deadline,
                    )
                )
            return created

        if data.user_id:
            user_id = await self.resolver.substitute_delegate(data.user_id, data.role)
            return [
                await self.assignments.create_assignment(
                    instance.id,
                    node.id,
                    visit_id,
                    AssignmentType.USER.value,
                    assigned_role=data.role,
                    assigned_user_id=user_id,
                    deadline=deadline,
                )
            ]

        role = data.role or data.required_role
        user_id = None
        if role:
            user_id = await self.resolver.resolve(role, data.assignment_strategy)
        if user_id is None:
            logger.warning(
                "Step %s of instance %s created without an assignee (role %s)",
                node.id,
                instance.id,
                role,
            )
        return [
            await self.assignments.create_assignment(
                instance.id,
                node.id,
                visit_id,
                AssignmentType.ROLE.value,
                assigned_role=role,
                assigned_user_id=user_id,
                deadline=deadline,
            )
        ]

    async def _notify(
        self,
        event: str,
        assignment: StepAssignmentResult,
        instance: WorkflowInstanceResult,
        *args: Any,
    ) -> None:
        if self.notifier is None:
            return
        if event in _ASSIGNEE_EVENTS and assignment.assigned_user_id is None:
            return
        try:
            await getattr(self.notifier, event)(assignment, instance, *args)
        except Exception:
            logger.exception("Notification %s failed for %s", event, assignment.id)
