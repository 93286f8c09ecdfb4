"""Domain entities: workflow graph structures."""

from auditflow.domain.entities.workflow_graph import (
    Edge,
    Node,
    NodeData,
    Position,
    WorkflowGraph,
    decision_edge_kind,
    select_decision_edge,
)

__all__ = [
    "Edge",
    "Node",
    "NodeData",
    "Position",
    "WorkflowGraph",
    "decision_edge_kind",
    "select_decision_edge",
]
