"""Tests for workflow graph entities: serialization, edge helpers, decision routing."""

from auditflow.domain.entities.workflow_graph import (
    Edge,
    Node,
    NodeData,
    WorkflowGraph,
    decision_edge_kind,
    select_decision_edge,
)
from auditflow.domain.enums import ApprovalType, NodeType

GRAPH = {
    "nodes": [
        {"id": "start", "type": "start", "data": {"label": "Start"}, "position": {"x": 0, "y": 0}},
        {
            "id": "review",
            "type": "process",
            "data": {"label": "Review", "role": "REVIEWER", "deadline_hours": 24},
            "position": {"x": 0, "y": 100},
        },
        {
            "id": "sign",
            "type": "approval",
            "data": {"label": "Sign off", "approvers": ["u1", "u2"], "approval_type": "ALL"},
            "position": {"x": 0, "y": 200},
        },
        {"id": "end", "type": "end", "data": {"label": "End"}, "position": {"x": 0, "y": 300}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "review"},
        {"id": "e2", "source": "review", "target": "sign"},
        {"id": "e3", "source": "sign", "target": "end"},
        {"id": "e4", "source": "sign", "target": "review", "is_reject": True, "label": "Rework"},
    ],
}


def test_graph_round_trips_through_dict() -> None:
    graph = WorkflowGraph.from_dict(GRAPH)
    again = WorkflowGraph.from_dict(graph.to_dict())
    assert again == graph
    sign = graph.node("sign")
    assert sign is not None
    assert sign.type is NodeType.APPROVAL
    assert sign.data.approval_type is ApprovalType.ALL
    assert sign.data.approvers == ["u1", "u2"]


def test_node_data_omits_unset_values() -> None:
    data = NodeData(label="Task", role="QA").to_dict()
    assert data == {"label": "Task", "role": "QA", "approval_type": "ANY"}


def test_forward_and_reject_edges() -> None:
    graph = WorkflowGraph.from_dict(GRAPH)
    assert [e.id for e in graph.outgoing("sign")] == ["e3", "e4"]
    assert [e.id for e in graph.forward_edges("sign")] == ["e3"]
    assert graph.reject_edge("sign").id == "e4"
    assert graph.reject_edge("review") is None


def test_start_node_requires_exactly_one() -> None:
    graph = WorkflowGraph.from_dict(GRAPH)
    assert graph.start_node().id == "start"
    graph.nodes.append(Node(id="start2", type=NodeType.START))
    assert graph.start_node() is None


def test_adjacency_drops_edges_to_unknown_nodes() -> None:
    graph = WorkflowGraph.from_dict(GRAPH)
    graph.edges.append(Edge(id="dangling", source="review", target="ghost"))
    assert graph.adjacency()["review"] == ["sign"]


def test_decision_edge_kinds() -> None:
    assert decision_edge_kind(Edge("a", "d", "x")) == "fallback"
    assert decision_edge_kind(Edge("a", "d", "x", condition="else")) == "fallback"
    assert decision_edge_kind(Edge("a", "d", "x", condition="amount > 5", is_default=True)) == "fallback"
    assert decision_edge_kind(Edge("a", "d", "x", condition="Yes")) == "true"
    assert decision_edge_kind(Edge("a", "d", "x", condition="no")) == "false"
    assert decision_edge_kind(Edge("a", "d", "x", condition="amount > 5")) == "condition"


class TestSelectDecisionEdge:
    """First matching edge in declared order wins; fallback when nothing matches."""

    def _decision(self, condition: str | None = None) -> Node:
        return Node(id="d", type=NodeType.DECISION, data=NodeData(label="?", condition=condition))

    def test_true_false_branches_follow_node_condition(self) -> None:
        node = self._decision("amount > 1000")
        edges = [
            Edge("yes", "d", "big", condition="yes"),
            Edge("no", "d", "small", condition="no"),
        ]
        edge, matched = select_decision_edge(node, edges, {"amount": 5000})
        assert (edge.id, matched) == ("yes", True)
        edge, matched = select_decision_edge(node, edges, {"amount": 10})
        assert (edge.id, matched) == ("no", True)

    def test_declared_order_breaks_ties(self) -> None:
        edges = [
            Edge("first", "d", "a", condition="amount > 10"),
            Edge("second", "d", "b", condition="amount > 100"),
        ]
        edge, _ = select_decision_edge(self._decision(), edges, {"amount": 500})
        assert edge.id == "first"

    def test_fallback_when_nothing_matches(self) -> None:
        edges = [
            Edge("other", "d", "b", condition="else"),
            Edge("high", "d", "a", condition="risk == high"),
        ]
        edge, matched = select_decision_edge(self._decision(), edges, {"risk": "low"})
        assert (edge.id, matched) == ("other", False)

    def test_no_match_and_no_fallback(self) -> None:
        edges = [Edge("high", "d", "a", condition="risk == high")]
        assert select_decision_edge(self._decision(), edges, {}) == (None, False)
