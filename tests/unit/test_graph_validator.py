"""Tests for validate_workflow: structural errors, warnings and info."""

from typing import Any

from auditflow.application.services.graph_validator import validate_workflow
from auditflow.domain.entities.workflow_graph import WorkflowGraph


def _node(node_id: str, node_type: str, **data: Any) -> dict[str, Any]:
    return {"id": node_id, "type": node_type, "data": {"label": node_id.title(), **data}}


def _edge(source: str, target: str, **extra: Any) -> dict[str, Any]:
    return {"id": f"{source}-{target}", "source": source, "target": target, **extra}


def _validate(nodes: list[dict], edges: list[dict]):
    return validate_workflow(WorkflowGraph.from_dict({"nodes": nodes, "edges": edges}))


def _codes(issues) -> list[str]:
    return [i.code for i in issues]


def _linear(**process_data: Any):
    data = {"role": "REVIEWER", "deadline_hours": 24, **process_data}
    return (
        [_node("start", "start"), _node("review", "process", **data), _node("end", "end")],
        [_edge("start", "review"), _edge("review", "end")],
    )


def test_valid_linear_graph() -> None:
    result = _validate(*_linear())
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert "graph_statistics" in _codes(result.info)
    duration = next(i for i in result.info if i.code == "estimated_duration")
    assert "1 day(s)" in duration.message


def test_validation_is_idempotent() -> None:
    nodes, edges = _linear()
    graph = WorkflowGraph.from_dict({"nodes": nodes, "edges": edges})
    assert validate_workflow(graph).to_dict() == validate_workflow(graph).to_dict()


def test_empty_graph() -> None:
    result = _validate([], [])
    assert not result.is_valid
    assert _codes(result.errors) == ["empty_workflow"]


def test_missing_start() -> None:
    result = _validate(
        [_node("review", "process", role="R", deadline_hours=1), _node("end", "end")],
        [_edge("review", "end")],
    )
    assert "missing_start" in _codes(result.errors)


def test_multiple_start_nodes_reported_per_extra_node() -> None:
    nodes, edges = _linear()
    nodes.append(_node("start2", "start"))
    edges.append(_edge("start2", "review"))
    result = _validate(nodes, edges)
    issues = [i for i in result.errors if i.code == "multiple_start_nodes"]
    assert [i.node_id for i in issues] == ["start2"]


def test_dangling_edge() -> None:
    nodes, edges = _linear()
    edges.append(_edge("review", "ghost"))
    result = _validate(nodes, edges)
    dangling = [i for i in result.errors if i.code == "dangling_edge"]
    assert [i.edge_id for i in dangling] == ["review-ghost"]


def test_unreachable_node() -> None:
    nodes, edges = _linear()
    nodes.append(_node("orphan", "process", role="R", deadline_hours=1))
    edges.append(_edge("orphan", "end"))
    result = _validate(nodes, edges)
    unreachable = [i.node_id for i in result.errors if i.code == "unreachable_node"]
    assert unreachable == ["orphan"]


def test_dead_end_node_has_no_outgoing_edge() -> None:
    nodes, edges = _linear()
    edges.pop()
    result = _validate(nodes, edges)
    assert "no_outgoing_edges" in _codes(result.errors)
    assert "cannot_reach_end" in _codes(result.warnings)


def test_missing_end_is_a_warning() -> None:
    result = _validate(
        [_node("start", "start"), _node("review", "process", role="R", deadline_hours=1)],
        [_edge("start", "review")],
    )
    assert "missing_end" in _codes(result.warnings)


def test_process_without_deadline_or_assignee() -> None:
    result = _validate(*_linear(role=None, deadline_hours=None))
    assert result.is_valid
    assert set(_codes(result.warnings)) == {"missing_deadline", "missing_assignee"}


def test_unreadable_deadline() -> None:
    result = _validate(*_linear(deadline_hours=None, deadline="soon"))
    assert "invalid_deadline" in _codes(result.warnings)


def test_duration_string_deadline_accepted() -> None:
    result = _validate(*_linear(deadline_hours=None, deadline="3d"))
    assert result.warnings == []
    duration = next(i for i in result.info if i.code == "estimated_duration")
    assert "3 day(s)" in duration.message


def test_approval_without_approvers() -> None:
    result = _validate(
        [_node("start", "start"), _node("sign", "approval", approvers=[]), _node("end", "end")],
        [_edge("start", "sign"), _edge("sign", "end")],
    )
    assert _codes(result.errors) == ["missing_approvers"]


def test_single_approver_all_warns() -> None:
    result = _validate(
        [
            _node("start", "start"),
            _node("sign", "approval", approvers=["u1"], approval_type="ALL"),
            _node("end", "end"),
        ],
        [_edge("start", "sign"), _edge("sign", "end")],
    )
    assert result.is_valid
    assert "single_approver_all" in _codes(result.warnings)


class TestDecisionNodes:
    """Decision branches must parse and cover every case."""

    def _graph(self, decision_data: dict, branches: list[dict]):
        nodes = [
            _node("start", "start"),
            _node("decide", "decision", **decision_data),
            _node("big", "process", role="R", deadline_hours=1),
            _node("small", "process", role="R", deadline_hours=1),
            _node("end", "end"),
        ]
        edges = [
            _edge("start", "decide"),
            *branches,
            _edge("big", "end"),
            _edge("small", "end"),
        ]
        return _validate(nodes, edges)

    def test_conditions_with_default_branch(self) -> None:
        result = self._graph(
            {},
            [
                _edge("decide", "big", condition="amount > 1000"),
                _edge("decide", "small", condition="else"),
            ],
        )
        assert result.is_valid

    def test_true_false_branches_cover_both_cases(self) -> None:
        result = self._graph(
            {"condition": "amount > 1000"},
            [
                _edge("decide", "big", condition="yes"),
                _edge("decide", "small", condition="no"),
            ],
        )
        assert result.is_valid

    def test_non_exhaustive(self) -> None:
        result = self._graph(
            {},
            [
                _edge("decide", "big", condition="amount > 1000"),
                _edge("decide", "small", condition="amount < 10"),
            ],
        )
        assert _codes(result.errors) == ["non_exhaustive_decision"]

    def test_invalid_edge_condition(self) -> None:
        result = self._graph(
            {},
            [
                _edge("decide", "big", condition="amount is large"),
                _edge("decide", "small", is_default=True),
            ],
        )
        invalid = [i for i in result.errors if i.code == "invalid_condition"]
        assert [i.edge_id for i in invalid] == ["decide-big"]

    def test_branch_keywords_need_node_condition(self) -> None:
        result = self._graph(
            {},
            [
                _edge("decide", "big", condition="yes"),
                _edge("decide", "small", condition="else"),
            ],
        )
        assert "missing_node_condition" in _codes(result.errors)

    def test_only_fallback_edges(self) -> None:
        result = self._graph({}, [_edge("decide", "big"), _edge("decide", "small")])
        assert "decision_without_conditions" in _codes(result.errors)


def test_rework_loop_is_valid_and_reported_as_cycle() -> None:
    result = _validate(
        [
            _node("start", "start"),
            _node("review", "process", role="R", deadline_hours=8),
            _node("decide", "decision", condition='status == "approved"'),
            _node("end", "end"),
        ],
        [
            _edge("start", "review"),
            _edge("review", "decide"),
            _edge("decide", "end", condition="yes"),
            _edge("decide", "review", condition="no"),
        ],
    )
    assert result.is_valid
    cycles = [i for i in result.info if i.code == "cycle_detected"]
    assert len(cycles) == 1
    assert cycles[0].message == "Cycle: review -> decide -> review"


def test_long_chain_validates_without_recursion_limit() -> None:
    steps = [f"step{i}" for i in range(1500)]
    nodes = [_node("start", "start")]
    nodes += [_node(s, "process", role="REVIEWER", deadline_hours=1) for s in steps]
    nodes.append(_node("end", "end"))
    order = ["start", *steps, "end"]
    edges = [_edge(a, b) for a, b in zip(order, order[1:])]
    edges.append(_edge(steps[-1], steps[0]))

    result = _validate(nodes, edges)
    assert result.errors == []
    [cycle] = [i for i in result.info if i.code == "cycle_detected"]
    assert cycle.message.startswith("Cycle: step0 -> step1 -> step2")
    assert cycle.message.endswith("step1499 -> step0")
