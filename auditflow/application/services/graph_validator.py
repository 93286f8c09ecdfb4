"""Structural and semantic validation of workflow graphs.

validate_workflow() is pure and idempotent: it never raises for a bad graph,
it reports every problem as a ValidationIssue so the editor can show all of
them at once. It runs on every structural edit and before every publish.
"""

from __future__ import annotations

import math
from collections import deque

from auditflow.application.dtos.validation import ValidationIssue, ValidationResult
from auditflow.application.services.deadlines import try_parse_deadline
from auditflow.domain.entities.workflow_graph import (
    Node,
    WorkflowGraph,
    decision_edge_kind,
)
from auditflow.domain.enums import ApprovalType, NodeType
from auditflow.domain.exceptions import ConditionSyntaxException
from auditflow.domain.value_objects.condition import Condition


def _reachable_from(adjacency: dict[str, list[str]], roots: list[str]) -> set[str]:
    """BFS over adjacency from roots; returns every visited node id."""
    seen: set[str] = set(roots)
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        for nxt in adjacency.get(current, []):
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def _find_cycles(adjacency: dict[str, list[str]], order: list[str]) -> list[list[str]]:
    """Return one path per back edge, found by an iterative DFS over an explicit stack."""
    cycles: list[list[str]] = []
    visited: set[str] = set()
    path: list[str] = []
    on_path: set[str] = set()

    for root in order:
        if root in visited:
            continue
        visited.add(root)
        path.append(root)
        on_path.add(root)
        stack = [iter(adjacency.get(root, []))]
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                on_path.discard(path.pop())
            elif nxt in on_path:
                cycles.append(path[path.index(nxt):] + [nxt])
            elif nxt not in visited:
                visited.add(nxt)
                path.append(nxt)
                on_path.add(nxt)
                stack.append(iter(adjacency.get(nxt, [])))
    return cycles


def _check_structure(graph: WorkflowGraph, result: ValidationResult) -> None:
    seen: set[str] = set()
    for node in graph.nodes:
        if node.id in seen:
            result.errors.append(
                ValidationIssue(
                    code="duplicate_node_id",
                    message=f"Node id '{node.id}' is used more than once",
                    node_id=node.id,
                    suggestion="Give every node a unique id",
                )
            )
        seen.add(node.id)

    for edge in graph.edges:
        for ref in (edge.source, edge.target):
            if ref not in seen:
                result.errors.append(
                    ValidationIssue(
                        code="dangling_edge",
                        message=f"Edge '{edge.id}' references unknown node '{ref}'",
                        edge_id=edge.id,
                        suggestion="Remove the edge or reconnect it to an existing node",
                    )
                )

    starts = graph.nodes_of_type(NodeType.START)
    if not starts:
        result.errors.append(
            ValidationIssue(
                code="missing_start",
                message="Workflow has no start node",
                suggestion="Add exactly one start node",
            )
        )
    elif len(starts) > 1:
        for extra in starts[1:]:
            result.errors.append(
                ValidationIssue(
                    code="multiple_start_nodes",
                    message=f"Workflow has {len(starts)} start nodes; exactly one is allowed",
                    node_id=extra.id,
                    suggestion="Remove the extra start nodes",
                )
            )

    if not graph.nodes_of_type(NodeType.END):
        result.warnings.append(
            ValidationIssue(
                code="missing_end",
                message="Workflow has no end node; instances can never complete",
                suggestion="Add an end node and connect the final steps to it",
            )
        )


def _check_connectivity(graph: WorkflowGraph, result: ValidationResult) -> None:
    adjacency = graph.adjacency()
    start = graph.start_node()
    if start is not None:
        reachable = _reachable_from(adjacency, [start.id])
        for node in graph.nodes:
            if node.id not in reachable:
                result.errors.append(
                    ValidationIssue(
                        code="unreachable_node",
                        message=f"Node '{node.data.label or node.id}' is not reachable from start",
                        node_id=node.id,
                        suggestion="Connect this node to the flow or delete it",
                    )
                )

    for node in graph.nodes:
        forward = graph.forward_edges(node.id)
        if node.type == NodeType.END:
            if graph.outgoing(node.id):
                result.warnings.append(
                    ValidationIssue(
                        code="end_has_outgoing_edges",
                        message=f"End node '{node.id}' has outgoing edges that are never followed",
                        node_id=node.id,
                    )
                )
            continue
        if not forward:
            result.errors.append(
                ValidationIssue(
                    code="no_outgoing_edges",
                    message=f"Node '{node.data.label or node.id}' has no outgoing edge",
                    node_id=node.id,
                    suggestion="Connect this node to the next step or to an end node",
                )
            )
        elif len(forward) > 1 and node.type != NodeType.DECISION:
            result.warnings.append(
                ValidationIssue(
                    code="multiple_forward_edges",
                    message=(
                        f"Node '{node.data.label or node.id}' has {len(forward)} outgoing "
                        "edges; only the first is followed"
                    ),
                    node_id=node.id,
                    suggestion="Use a decision node to branch",
                )
            )

    ends = [n.id for n in graph.nodes_of_type(NodeType.END)]
    if ends:
        reverse: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
        for source, targets in adjacency.items():
            for target in targets:
                reverse[target].append(source)
        can_finish = _reachable_from(reverse, ends)
        for node in graph.nodes:
            if node.id not in can_finish:
                result.warnings.append(
                    ValidationIssue(
                        code="cannot_reach_end",
                        message=f"Node '{node.data.label or node.id}' has no path to an end node",
                        node_id=node.id,
                        suggestion="Connect this part of the graph to an end node",
                    )
                )


def _check_process(node: Node, result: ValidationResult) -> None:
    data = node.data
    if data.deadline_hours is None and data.deadline is None:
        result.warnings.append(
            ValidationIssue(
                code="missing_deadline",
                message=f"Process '{data.label or node.id}' has no deadline; the default applies",
                node_id=node.id,
                suggestion="Set deadline hours so overdue work can be escalated",
            )
        )
    elif (
        try_parse_deadline(data.deadline_hours) is None
        and try_parse_deadline(data.deadline) is None
    ):
        result.warnings.append(
            ValidationIssue(
                code="invalid_deadline",
                message=f"Process '{data.label or node.id}' has an unreadable deadline",
                node_id=node.id,
                suggestion="Use hours or a duration such as 2h, 3d or 1w",
            )
        )
    if not data.role and not data.user_id:
        result.warnings.append(
            ValidationIssue(
                code="missing_assignee",
                message=f"Process '{data.label or node.id}' has no role or user",
                node_id=node.id,
                suggestion="Assign a role so the step is not created unassigned",
            )
        )


def _check_approval(node: Node, result: ValidationResult) -> None:
    data = node.data
    if not data.approvers:
        result.errors.append(
            ValidationIssue(
                code="missing_approvers",
                message=f"Approval '{data.label or node.id}' has no approvers",
                node_id=node.id,
                suggestion="Add at least one approver",
            )
        )
    elif len(data.approvers) == 1 and data.approval_type == ApprovalType.ALL:
        result.warnings.append(
            ValidationIssue(
                code="single_approver_all",
                message=(
                    f"Approval '{data.label or node.id}' requires ALL approvers but has "
                    "only one; it behaves like ANY"
                ),
                node_id=node.id,
            )
        )


def _check_decision(graph: WorkflowGraph, node: Node, result: ValidationResult) -> None:
    edges = graph.forward_edges(node.id)
    if not edges:
        return
    label = node.data.label or node.id
    if len(edges) == 1:
        result.warnings.append(
            ValidationIssue(
                code="single_branch_decision",
                message=f"Decision '{label}' has a single outgoing edge",
                node_id=node.id,
            )
        )

    node_condition_ok = False
    if node.data.condition:
        try:
            Condition.parse(node.data.condition)
            node_condition_ok = True
        except ConditionSyntaxException as e:
            result.errors.append(
                ValidationIssue(
                    code="invalid_condition",
                    message=f"Decision '{label}': {e.message}",
                    node_id=node.id,
                    suggestion="Use '<field> <operator> <value>', e.g. amount > 1000",
                )
            )

    kinds = [decision_edge_kind(e) for e in edges]
    for edge, kind in zip(edges, kinds):
        if kind == "condition":
            try:
                Condition.parse(edge.condition or "")
            except ConditionSyntaxException as e:
                result.errors.append(
                    ValidationIssue(
                        code="invalid_condition",
                        message=f"Edge '{edge.id}' from decision '{label}': {e.message}",
                        node_id=node.id,
                        edge_id=edge.id,
                        suggestion="Use '<field> <operator> <value>', e.g. amount > 1000",
                    )
                )
        elif kind in ("true", "false") and not node.data.condition:
            result.errors.append(
                ValidationIssue(
                    code="missing_node_condition",
                    message=f"Edge '{edge.id}' is a {kind} branch but decision '{label}' has no condition",
                    node_id=node.id,
                    edge_id=edge.id,
                    suggestion="Set the decision's condition or give the edge its own condition",
                )
            )

    if all(k == "fallback" for k in kinds):
        result.errors.append(
            ValidationIssue(
                code="decision_without_conditions",
                message=f"Decision '{label}' has no conditional outgoing edges",
                node_id=node.id,
                suggestion="Add a condition to at least one branch",
            )
        )
        return

    has_fallback = "fallback" in kinds
    covers_both = node_condition_ok and "true" in kinds and "false" in kinds
    if not has_fallback and not covers_both:
        result.errors.append(
            ValidationIssue(
                code="non_exhaustive_decision",
                message=f"Decision '{label}' has no default branch for unmatched cases",
                node_id=node.id,
                suggestion="Add an 'else' edge, or cover both true and false",
            )
        )
    if kinds.count("fallback") > 1:
        result.warnings.append(
            ValidationIssue(
                code="multiple_default_branches",
                message=f"Decision '{label}' has more than one default branch; the first wins",
                node_id=node.id,
            )
        )


def _add_info(graph: WorkflowGraph, result: ValidationResult) -> None:
    result.info.append(
        ValidationIssue(
            code="graph_statistics",
            message=f"{len(graph.nodes)} nodes, {len(graph.edges)} edges",
        )
    )
    order = [n.id for n in graph.nodes]
    for cycle in _find_cycles(graph.adjacency(), order):
        result.info.append(
            ValidationIssue(
                code="cycle_detected",
                message="Cycle: " + " -> ".join(cycle),
                node_id=cycle[0],
            )
        )
    total_hours = 0.0
    for node in graph.nodes:
        if node.type.is_actionable:
            total_hours += (
                try_parse_deadline(node.data.deadline_hours)
                or try_parse_deadline(node.data.deadline)
                or 0.0
            )
    if total_hours > 0:
        days = math.ceil(total_hours / 24)
        result.info.append(
            ValidationIssue(
                code="estimated_duration",
                message=f"Estimated duration: {days} day(s) ({total_hours:g}h of step deadlines)",
            )
        )


def validate_workflow(graph: WorkflowGraph) -> ValidationResult:
    """Validate a candidate graph and return categorized issues.

    Errors block publishing; warnings flag risk; info carries statistics and
    detected cycles (cycles are allowed, e.g. rework loops).
    """
    result = ValidationResult()
    if not graph.nodes:
        result.errors.append(
            ValidationIssue(
                code="empty_workflow",
                message="Workflow has no nodes",
                suggestion="Start from a template or add a start node",
            )
        )
        return result

    _check_structure(graph, result)
    _check_connectivity(graph, result)
    for node in graph.nodes:
        if node.type == NodeType.PROCESS:
            _check_process(node, result)
        elif node.type == NodeType.APPROVAL:
            _check_approval(node, result)
        elif node.type == NodeType.DECISION:
            _check_decision(graph, node, result)
    _add_info(graph, result)
    return result
