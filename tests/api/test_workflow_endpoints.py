"""HTTP tests for workflow definitions, templates, instances and assignments."""

from typing import Any

from httpx import AsyncClient


def _graph(**review: Any) -> dict[str, Any]:
    data = {"label": "Review", "role": "REVIEWER", "deadline_hours": 24, **review}
    return {
        "nodes": [
            {"id": "start", "type": "start", "data": {"label": "Start"}},
            {"id": "review", "type": "process", "data": data},
            {"id": "done", "type": "end", "data": {"label": "Done"}},
        ],
        "edges": [
            {"id": "e1", "source": "start", "target": "review"},
            {"id": "e2", "source": "review", "target": "done"},
        ],
    }


async def _publish(client: AsyncClient, graph: dict[str, Any] | None = None, **extra: Any):
    body = {"name": "Engagement approval", "entity_type": "engagement", "graph": graph or _graph()}
    return await client.post("/api/v1/workflows", json={**body, **extra})


async def test_health_and_readiness(client: AsyncClient) -> None:
    """GET /health is ok; /health/ready reports both job queues."""
    assert (await client.get("/api/v1/health")).json() == {"status": "ok"}
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "ok"
    assert set(body["queues"]) == {"notifications", "external-sync"}


async def test_validate_reports_issues_without_saving(client: AsyncClient) -> None:
    """POST /workflows/validate returns categorized issues."""
    graph = _graph()
    graph["nodes"] = graph["nodes"][1:]
    response = await client.post("/api/v1/workflows/validate", json=graph)
    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert "missing_start" in [e["code"] for e in body["errors"]]
    assert (await client.get("/api/v1/workflows")).json() == []


async def test_publish_and_version(client: AsyncClient) -> None:
    """Publishing the same name twice creates v2 and deactivates v1."""
    first = await _publish(client)
    assert first.status_code == 201
    v1 = first.json()["definition"]
    assert (v1["version"], v1["is_active"]) == (1, True)

    second = (await _publish(client)).json()["definition"]
    assert second["version"] == 2
    assert (await client.get(f"/api/v1/workflows/{v1['id']}")).json()["is_active"] is False
    active = (await client.get("/api/v1/workflows")).json()
    assert [d["id"] for d in active] == [second["id"]]


async def test_publish_invalid_graph_returns_400(client: AsyncClient) -> None:
    """A graph with errors is rejected with every issue in the details."""
    response = await _publish(client, {"nodes": [], "edges": []})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "STRUCTURAL_VALIDATION_ERROR"
    assert [e["code"] for e in body["details"]["errors"]] == ["empty_workflow"]


async def test_publish_unknown_node_type_returns_422(client: AsyncClient) -> None:
    graph = _graph()
    graph["nodes"][1]["type"] = "teleport"
    assert (await _publish(client, graph)).status_code == 422


async def test_unknown_definition_returns_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/workflows/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "RESOURCE_NOT_FOUND"


async def test_templates(client: AsyncClient) -> None:
    """Template listing filters by category; instantiation yields a valid graph."""
    templates = (await client.get("/api/v1/workflows/templates")).json()
    assert "standard-process" in [t["id"] for t in templates]
    approvals = (await client.get("/api/v1/workflows/templates?category=approval")).json()
    assert approvals
    assert {t["category"] for t in approvals} == {"approval"}

    response = await client.post("/api/v1/workflows/templates/standard-process/instantiate")
    assert response.status_code == 200
    assert response.json()["validation"]["is_valid"] is True

    missing = await client.post("/api/v1/workflows/templates/nope/instantiate")
    assert missing.status_code == 404


async def test_node_template_instantiation(client: AsyncClient) -> None:
    nodes = (await client.get("/api/v1/workflows/templates/nodes?category=basic")).json()
    template_id = nodes[0]["id"]
    response = await client.post(
        f"/api/v1/workflows/templates/nodes/{template_id}/instantiate",
        json={"position": {"x": 10, "y": 20}, "overrides": {"label": "Custom"}},
    )
    assert response.status_code == 200
    node = response.json()
    assert node["data"]["label"] == "Custom"
    assert node["position"] == {"x": 10, "y": 20}


async def test_start_approve_and_timeline(client: AsyncClient) -> None:
    """Start an instance, approve its only step and read the timeline."""
    await _publish(client)
    started = await client.post(
        "/api/v1/workflow-instances",
        json={"entity_type": "engagement", "entity_id": "E-1", "started_by": "u0"},
    )
    assert started.status_code == 201
    body = started.json()
    instance_id = body["instance"]["id"]
    assert body["instance"]["current_node_id"] == "review"
    [assignment] = body["assignments_created"]
    assert assignment["assigned_user_id"] is None

    unassigned = (await client.get("/api/v1/workflow-instances/unassigned")).json()
    assert [a["id"] for a in unassigned] == [assignment["id"]]

    again = await client.post(
        "/api/v1/workflow-instances", json={"entity_type": "engagement", "entity_id": "E-1"}
    )
    assert again.json()["instance"]["id"] == instance_id

    approved = await client.post(
        f"/api/v1/assignments/{assignment['id']}/action",
        json={"action": "approve", "actor_id": "u1", "comment": "ok"},
    )
    assert approved.status_code == 200
    assert approved.json()["instance"]["status"] == "completed"

    timeline = (await client.get(f"/api/v1/workflow-instances/{instance_id}/timeline")).json()
    assert [e["action"] for e in timeline] == ["enter_node", "approve", "complete"]

    repeat = await client.post(
        f"/api/v1/assignments/{assignment['id']}/action",
        json={"action": "approve", "actor_id": "u1"},
    )
    assert repeat.status_code == 409
    assert repeat.json()["error"] == "INVALID_TRANSITION"


async def test_start_without_definition_returns_404(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/workflow-instances", json={"entity_type": "invoice", "entity_id": "I-1"}
    )
    assert response.status_code == 404


async def test_unknown_action_returns_422(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/assignments/a1/action", json={"action": "shrug", "actor_id": "u1"}
    )
    assert response.status_code == 422


async def test_cancel_instance(client: AsyncClient) -> None:
    await _publish(client)
    started = (
        await client.post(
            "/api/v1/workflow-instances", json={"entity_type": "engagement", "entity_id": "E-2"}
        )
    ).json()
    instance_id = started["instance"]["id"]
    response = await client.post(
        f"/api/v1/workflow-instances/{instance_id}/cancel",
        json={"actor_id": "admin", "reason": "withdrawn"},
    )
    assert response.status_code == 200
    assert response.json()["instance"]["status"] == "cancelled"

    assignments = (
        await client.get(f"/api/v1/workflow-instances/{instance_id}/assignments")
    ).json()
    assert [a["status"] for a in assignments] == ["rejected"]

    stats = (await client.get("/api/v1/workflow-instances/deadline-stats")).json()
    assert stats["total_pending"] == 0
