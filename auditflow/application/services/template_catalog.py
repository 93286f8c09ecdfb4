"""Read-only catalog of reusable node fragments and starter workflow graphs.

Templates are declared with local keys; instantiation assigns fresh CUIDs to
every node and edge and remaps all edge endpoints. Instantiating the same
template twice therefore yields graphs with disjoint ids.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from auditflow.domain.entities.workflow_graph import (
    Edge,
    Node,
    NodeData,
    Position,
    WorkflowGraph,
)
from auditflow.domain.enums import NodeType
from auditflow.domain.exceptions import (
    ResourceNotFoundException,
    TemplateInstantiationException,
)
from auditflow.shared.utils.generators import generate_cuid


@dataclass(frozen=True)
class NodeTemplate:
    """Reusable single-node fragment for the graph editor palette."""

    id: str
    name: str
    description: str
    category: str
    type: NodeType
    default_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TemplateNode:
    key: str
    type: NodeType
    data: dict[str, Any] = field(default_factory=dict)
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class TemplateEdge:
    key: str
    source: str
    target: str
    condition: str | None = None
    is_default: bool = False
    is_reject: bool = False
    label: str | None = None


@dataclass(frozen=True)
class WorkflowTemplate:
    """Starter graph; nodes and edges reference each other by local key."""

    id: str
    name: str
    description: str
    category: str
    nodes: tuple[TemplateNode, ...]
    edges: tuple[TemplateEdge, ...]


NODE_CATEGORIES = ("basic", "approval", "conditional", "review")
WORKFLOW_CATEGORIES = ("approval", "review", "escalation", "standard")

NODE_TEMPLATES: tuple[NodeTemplate, ...] = (
    NodeTemplate(
        "simple-task", "Simple Task", "Standard task with a one-day deadline",
        "basic", NodeType.PROCESS, {"label": "Task", "deadline_hours": 24},
    ),
    NodeTemplate(
        "urgent-task", "Urgent Task", "High priority task due within four hours",
        "basic", NodeType.PROCESS,
        {"label": "Urgent Task", "deadline_hours": 4, "priority": "high"},
    ),
    NodeTemplate(
        "long-task", "Long Task", "Task with a one-week deadline",
        "basic", NodeType.PROCESS, {"label": "Long Task", "deadline_hours": 168},
    ),
    NodeTemplate(
        "single-approval", "Single Approval", "Any one approver can approve",
        "approval", NodeType.APPROVAL,
        {"label": "Approval", "approval_type": "ANY", "approvers": []},
    ),
    NodeTemplate(
        "manager-approval", "Manager Approval", "All listed managers must approve",
        "approval", NodeType.APPROVAL,
        {
            "label": "Manager Approval",
            "approval_type": "ALL",
            "approvers": [],
            "required_role": "MANAGER",
        },
    ),
    NodeTemplate(
        "multi-approval", "Multi Approval", "Every approver must approve",
        "approval", NodeType.APPROVAL,
        {"label": "Multi Approval", "approval_type": "ALL", "approvers": []},
    ),
    NodeTemplate(
        "yes-no-decision", "Yes/No Decision", "Branch on an approved status",
        "conditional", NodeType.DECISION,
        {"label": "Approved?", "condition": 'status == "approved"'},
    ),
    NodeTemplate(
        "value-check", "Value Check", "Branch on an amount threshold",
        "conditional", NodeType.DECISION,
        {"label": "Amount > 1000?", "condition": "amount > 1000"},
    ),
    NodeTemplate(
        "role-based-route", "Role Based Route", "Branch on the submitter's role",
        "conditional", NodeType.DECISION,
        {"label": "Is manager?", "condition": 'userRole == "MANAGER"'},
    ),
    NodeTemplate(
        "document-review", "Document Review", "Reviewer checks the document",
        "review", NodeType.PROCESS,
        {"label": "Document Review", "role": "REVIEWER", "deadline_hours": 48},
    ),
    NodeTemplate(
        "quality-check", "Quality Check", "QA verifies the result",
        "review", NodeType.PROCESS,
        {"label": "Quality Check", "role": "QA", "deadline_hours": 24},
    ),
    NodeTemplate(
        "final-review", "Final Review", "All reviewers sign off",
        "review", NodeType.APPROVAL,
        {"label": "Final Review", "approval_type": "ALL", "approvers": []},
    ),
)

_START = TemplateNode("start", NodeType.START, {"label": "Start"}, 250, 0)

WORKFLOW_TEMPLATES: tuple[WorkflowTemplate, ...] = (
    WorkflowTemplate(
        id="simple-approval",
        name="Simple Approval",
        description="One manager approves or rejects",
        category="approval",
        nodes=(
            _START,
            TemplateNode(
                "approve", NodeType.APPROVAL,
                {"label": "Manager Approval", "approval_type": "ANY",
                 "approvers": [], "required_role": "MANAGER", "deadline_hours": 48},
                250, 120,
            ),
            TemplateNode("approved", NodeType.END, {"label": "Approved"}, 150, 240),
            TemplateNode("rejected", NodeType.END, {"label": "Rejected"}, 350, 240),
        ),
        edges=(
            TemplateEdge("e1", "start", "approve"),
            TemplateEdge("e2", "approve", "approved"),
            TemplateEdge("e3", "approve", "rejected", is_reject=True, label="Rejected"),
        ),
    ),
    WorkflowTemplate(
        id="multi-level-approval",
        name="Multi-Level Approval",
        description="Manager approval followed by director approval",
        category="approval",
        nodes=(
            _START,
            TemplateNode(
                "manager", NodeType.APPROVAL,
                {"label": "Manager Approval", "approval_type": "ANY",
                 "approvers": [], "required_role": "MANAGER", "deadline_hours": 48},
                250, 120,
            ),
            TemplateNode(
                "director", NodeType.APPROVAL,
                {"label": "Director Approval", "approval_type": "ANY",
                 "approvers": [], "required_role": "DIRECTOR", "deadline_hours": 72},
                250, 240,
            ),
            TemplateNode("approved", NodeType.END, {"label": "Approved"}, 150, 360),
            TemplateNode("rejected", NodeType.END, {"label": "Rejected"}, 400, 360),
        ),
        edges=(
            TemplateEdge("e1", "start", "manager"),
            TemplateEdge("e2", "manager", "director"),
            TemplateEdge("e3", "director", "approved"),
            TemplateEdge("e4", "manager", "rejected", is_reject=True),
            TemplateEdge("e5", "director", "rejected", is_reject=True),
        ),
    ),
    WorkflowTemplate(
        id="review-workflow",
        name="Review Workflow",
        description="Document review, quality check and final sign-off with rework loop",
        category="review",
        nodes=(
            _START,
            TemplateNode(
                "review", NodeType.PROCESS,
                {"label": "Document Review", "role": "REVIEWER", "deadline_hours": 48},
                250, 120,
            ),
            TemplateNode(
                "qa", NodeType.PROCESS,
                {"label": "Quality Check", "role": "QA", "deadline_hours": 24},
                250, 240,
            ),
            TemplateNode(
                "final", NodeType.APPROVAL,
                {"label": "Final Review", "approval_type": "ALL", "approvers": [],
                 "deadline_hours": 24},
                250, 360,
            ),
            TemplateNode("done", NodeType.END, {"label": "Done"}, 250, 480),
        ),
        edges=(
            TemplateEdge("e1", "start", "review"),
            TemplateEdge("e2", "review", "qa"),
            TemplateEdge("e3", "qa", "final"),
            TemplateEdge("e4", "final", "done"),
            TemplateEdge("e5", "final", "review", is_reject=True, label="Rework"),
        ),
    ),
    WorkflowTemplate(
        id="escalation-workflow",
        name="Escalation Workflow",
        description="Handler works the request; large amounts need director sign-off",
        category="escalation",
        nodes=(
            _START,
            TemplateNode(
                "handle", NodeType.PROCESS,
                {"label": "Handle Request", "role": "HANDLER", "deadline_hours": 24,
                 "escalate_to": "SUPERVISOR"},
                250, 120,
            ),
            TemplateNode(
                "check", NodeType.DECISION,
                {"label": "Amount > 1000?"},
                250, 240,
            ),
            TemplateNode(
                "signoff", NodeType.PROCESS,
                {"label": "Director Sign-off", "role": "DIRECTOR", "deadline_hours": 48,
                 "escalate_to": "EXECUTIVE"},
                100, 360,
            ),
            TemplateNode("done", NodeType.END, {"label": "Done"}, 250, 480),
        ),
        edges=(
            TemplateEdge("e1", "start", "handle"),
            TemplateEdge("e2", "handle", "check"),
            TemplateEdge("e3", "check", "signoff", condition="amount > 1000"),
            TemplateEdge("e4", "check", "done", condition="else"),
            TemplateEdge("e5", "signoff", "done"),
        ),
    ),
    WorkflowTemplate(
        id="parallel-approval",
        name="Parallel Approval",
        description="Every listed approver must approve",
        category="approval",
        nodes=(
            _START,
            TemplateNode(
                "approve", NodeType.APPROVAL,
                {"label": "Parallel Approval", "approval_type": "ALL", "approvers": [],
                 "deadline_hours": 72},
                250, 120,
            ),
            TemplateNode("approved", NodeType.END, {"label": "Approved"}, 150, 240),
            TemplateNode("rejected", NodeType.END, {"label": "Rejected"}, 350, 240),
        ),
        edges=(
            TemplateEdge("e1", "start", "approve"),
            TemplateEdge("e2", "approve", "approved"),
            TemplateEdge("e3", "approve", "rejected", is_reject=True),
        ),
    ),
    WorkflowTemplate(
        id="standard-process",
        name="Standard Process",
        description="Submit, review, and loop back until approved",
        category="standard",
        nodes=(
            _START,
            TemplateNode(
                "submit", NodeType.PROCESS,
                {"label": "Prepare Submission", "role": "OWNER", "deadline_hours": 72},
                250, 120,
            ),
            TemplateNode(
                "review", NodeType.PROCESS,
                {"label": "Review", "role": "REVIEWER", "deadline_hours": 48,
                 "escalate_to": "MANAGER"},
                250, 240,
            ),
            TemplateNode(
                "decide", NodeType.DECISION,
                {"label": "Approved?", "condition": 'status == "approved"'},
                250, 360,
            ),
            TemplateNode("done", NodeType.END, {"label": "Done"}, 250, 480),
        ),
        edges=(
            TemplateEdge("e1", "start", "submit"),
            TemplateEdge("e2", "submit", "review"),
            TemplateEdge("e3", "review", "decide"),
            TemplateEdge("e4", "decide", "done", condition="yes"),
            TemplateEdge("e5", "decide", "submit", condition="no"),
            TemplateEdge("e6", "review", "submit", is_reject=True, label="Send back"),
        ),
    ),
)


def list_node_templates(category: str | None = None) -> list[NodeTemplate]:
    """Node templates, optionally filtered by category."""
    return [t for t in NODE_TEMPLATES if category is None or t.category == category]


def get_node_template(template_id: str) -> NodeTemplate:
    for t in NODE_TEMPLATES:
        if t.id == template_id:
            return t
    raise ResourceNotFoundException("node_template", template_id)


def list_workflow_templates(category: str | None = None) -> list[WorkflowTemplate]:
    """Workflow templates, optionally filtered by category."""
    return [t for t in WORKFLOW_TEMPLATES if category is None or t.category == category]


def get_workflow_template(template_id: str) -> WorkflowTemplate:
    for t in WORKFLOW_TEMPLATES:
        if t.id == template_id:
            return t
    raise ResourceNotFoundException("workflow_template", template_id)


def instantiate_node_template(
    template_id: str,
    position: Position | None = None,
    overrides: dict[str, Any] | None = None,
) -> Node:
    """Create a node with a fresh id from a node template."""
    template = get_node_template(template_id)
    data = {**template.default_data, **(overrides or {})}
    return Node(
        id=generate_cuid(),
        type=template.type,
        data=NodeData.from_dict(data),
        position=position or Position(),
    )


def instantiate_workflow_template(template_id: str) -> WorkflowGraph:
    """Build a graph from a workflow template with fresh node/edge ids.

    Raises:
        ResourceNotFoundException: unknown template id.
        TemplateInstantiationException: an edge references an undeclared node key.
    """
    template = get_workflow_template(template_id)
    id_map = {n.key: generate_cuid() for n in template.nodes}
    nodes = [
        Node(
            id=id_map[n.key],
            type=n.type,
            data=NodeData.from_dict(n.data),
            position=Position(n.x, n.y),
        )
        for n in template.nodes
    ]
    edges: list[Edge] = []
    for e in template.edges:
        for ref in (e.source, e.target):
            if ref not in id_map:
                raise TemplateInstantiationException(template.id, e.key, ref)
        edges.append(
            Edge(
                id=generate_cuid(),
                source=id_map[e.source],
                target=id_map[e.target],
                condition=e.condition,
                is_default=e.is_default,
                is_reject=e.is_reject,
                label=e.label,
            )
        )
    return WorkflowGraph(nodes=nodes, edges=edges)
