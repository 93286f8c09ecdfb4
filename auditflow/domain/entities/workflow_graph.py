"""Workflow graph domain entities: nodes, edges and the graph itself.

A graph is pure data. Its serialized shape (``to_dict``/``from_dict``) is the
only artifact persisted with a definition, so it must round-trip exactly.
Position is presentation-only and never read by the runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from auditflow.domain.enums import ApprovalType, NodeType
from auditflow.domain.value_objects.condition import Condition

# Edge conditions that select the true/false branch of a decision node's own condition.
TRUE_BRANCH_KEYWORDS = frozenset({"true", "yes"})
FALSE_BRANCH_KEYWORDS = frozenset({"false", "no"})


@dataclass(frozen=True)
class Position:
    """Canvas position of a node (graph editor only)."""

    x: float = 0.0
    y: float = 0.0


@dataclass
class NodeData:
    """Per-node configuration.

    process: role or user_id target, deadline, optional strategy/escalation role.
    approval: approvers (user ids) and approval_type quorum.
    decision: optional node-level condition used by true/false edges.
    """

    label: str = ""
    description: str | None = None
    role: str | None = None
    user_id: str | None = None
    deadline_hours: float | None = None
    deadline: str | None = None
    condition: str | None = None
    approvers: list[str] = field(default_factory=list)
    approval_type: ApprovalType = ApprovalType.ANY
    required_role: str | None = None
    escalate_to: str | None = None
    assignment_strategy: str | None = None
    priority: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting unset optional values."""
        data: dict[str, Any] = {"label": self.label}
        for key in (
            "description",
            "role",
            "user_id",
            "deadline_hours",
            "deadline",
            "condition",
            "required_role",
            "escalate_to",
            "assignment_strategy",
            "priority",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.approvers:
            data["approvers"] = list(self.approvers)
        data["approval_type"] = self.approval_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NodeData:
        """Deserialize; unknown keys are ignored."""
        data = data or {}
        return cls(
            label=data.get("label", ""),
            description=data.get("description"),
            role=data.get("role"),
            user_id=data.get("user_id"),
            deadline_hours=data.get("deadline_hours"),
            deadline=data.get("deadline"),
            condition=data.get("condition"),
            approvers=list(data.get("approvers") or []),
            approval_type=ApprovalType(data.get("approval_type", ApprovalType.ANY.value)),
            required_role=data.get("required_role"),
            escalate_to=data.get("escalate_to"),
            assignment_strategy=data.get("assignment_strategy"),
            priority=data.get("priority"),
        )


@dataclass
class Node:
    """Vertex of a workflow graph."""

    id: str
    type: NodeType
    data: NodeData = field(default_factory=NodeData)
    position: Position = field(default_factory=Position)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "data": self.data.to_dict(),
            "position": {"x": self.position.x, "y": self.position.y},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        pos = data.get("position") or {}
        return cls(
            id=data["id"],
            type=NodeType(data["type"]),
            data=NodeData.from_dict(data.get("data")),
            position=Position(x=pos.get("x", 0.0), y=pos.get("y", 0.0)),
        )


@dataclass
class Edge:
    """Arc of a workflow graph.

    condition applies only when the source is a decision node. is_default marks
    the fallback branch; is_reject marks the route taken when a step is rejected.
    """

    id: str
    source: str
    target: str
    condition: str | None = None
    is_default: bool = False
    is_reject: bool = False
    label: str | None = None

    @property
    def is_fallback(self) -> bool:
        """Whether this edge is taken when no other decision branch matches."""
        return self.is_default or Condition.is_default_keyword(self.condition)

    def branch_keyword(self) -> bool | None:
        """True/False when the condition selects a branch of the node condition, else None."""
        if not self.condition:
            return None
        word = self.condition.strip().lower()
        if word in TRUE_BRANCH_KEYWORDS:
            return True
        if word in FALSE_BRANCH_KEYWORDS:
            return False
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
        }
        if self.condition is not None:
            data["condition"] = self.condition
        if self.is_default:
            data["is_default"] = True
        if self.is_reject:
            data["is_reject"] = True
        if self.label is not None:
            data["label"] = self.label
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(
            id=data["id"],
            source=data["source"],
            target=data["target"],
            condition=data.get("condition"),
            is_default=bool(data.get("is_default", False)),
            is_reject=bool(data.get("is_reject", False)),
            label=data.get("label"),
        )


@dataclass
class WorkflowGraph:
    """Directed graph of typed nodes; the body of a workflow definition."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    def node(self, node_id: str) -> Node | None:
        """Return the node with this id, or None."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def nodes_of_type(self, node_type: NodeType) -> list[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def outgoing(self, node_id: str) -> list[Edge]:
        """All edges leaving node_id, in declared order."""
        return [e for e in self.edges if e.source == node_id]

    def forward_edges(self, node_id: str) -> list[Edge]:
        """Outgoing edges followed on success (reject routes excluded)."""
        return [e for e in self.outgoing(node_id) if not e.is_reject]

    def reject_edge(self, node_id: str) -> Edge | None:
        """The designated reject route of a node, if any."""
        for e in self.outgoing(node_id):
            if e.is_reject:
                return e
        return None

    def start_node(self) -> Node | None:
        """The single start node, or None when there is not exactly one."""
        starts = self.nodes_of_type(NodeType.START)
        return starts[0] if len(starts) == 1 else None

    def adjacency(self) -> dict[str, list[str]]:
        """Node id -> target ids (edges to unknown nodes are dropped)."""
        ids = {n.id for n in self.nodes}
        adj: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        for e in self.edges:
            if e.source in ids and e.target in ids:
                adj[e.source].append(e.target)
        return adj

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowGraph:
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes") or []],
            edges=[Edge.from_dict(e) for e in data.get("edges") or []],
        )


def decision_edge_kind(edge: Edge) -> str:
    """Classify a decision edge: "fallback", "true", "false" or "condition".

    An edge with no condition leaving a decision node acts as the fallback.
    """
    if edge.is_fallback or not edge.condition:
        return "fallback"
    branch = edge.branch_keyword()
    if branch is True:
        return "true"
    if branch is False:
        return "false"
    return "condition"


def select_decision_edge(
    node: Node, edges: list[Edge], metadata: dict[str, Any]
) -> tuple[Edge | None, bool]:
    """Pick the outgoing edge of a decision node for the given metadata.

    The first edge in declared order whose condition holds wins. When none
    holds, the first fallback edge is returned with matched=False.

    Returns:
        (edge or None, matched).
    """
    node_condition = Condition.parse(node.data.condition) if node.data.condition else None
    fallback: Edge | None = None
    for edge in edges:
        kind = decision_edge_kind(edge)
        if kind == "fallback":
            fallback = fallback or edge
            continue
        if kind == "true":
            holds = node_condition is not None and node_condition.evaluate(metadata)
        elif kind == "false":
            holds = node_condition is not None and not node_condition.evaluate(metadata)
        else:
            holds = Condition.parse(edge.condition or "").evaluate(metadata)
        if holds:
            return edge, True
    return fallback, False
